from tubefetch.ytdlp.progress import DestinationAnnounced, ProgressUpdate, parse_line
from tubefetch.ytdlp.runner import (
    FetchEvent,
    FetchFailedError,
    FetchFinished,
    MalformedMetadataError,
    ProbeFailedError,
    YtDlpError,
    YtDlpRunner,
)
from tubefetch.ytdlp.selectors import build_format_args

__all__ = [
    "DestinationAnnounced",
    "FetchEvent",
    "FetchFailedError",
    "FetchFinished",
    "MalformedMetadataError",
    "ProbeFailedError",
    "ProgressUpdate",
    "YtDlpError",
    "YtDlpRunner",
    "build_format_args",
    "parse_line",
]
