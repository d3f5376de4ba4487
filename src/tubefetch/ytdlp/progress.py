"""Translate yt-dlp's line-oriented console output into structured events.

Only two line shapes carry state: progress lines and destination
announcements. Everything else yt-dlp prints (extractor chatter, warnings,
post-processor notes) is ignored.
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    percent: float
    total: str
    speed: str
    eta: str


@dataclass(frozen=True, slots=True)
class DestinationAnnounced:
    path: str


ParsedLine = ProgressUpdate | DestinationAnnounced

# [download]  42.5% of ~10.00MiB at  1.20MiB/s ETA 00:05
_PROGRESS_RE = re.compile(
    r"^\[download\]\s+(?P<percent>\d+(?:\.\d+)?)%\s+of\s+(?P<total>.+?)"
    r"\s+at\s+(?P<speed>.+?)\s+ETA\s+(?P<eta>\S+)"
)

_DESTINATION_RES = (
    re.compile(r"^\[download\] Destination: (?P<path>.+)$"),
    re.compile(r"^\[ExtractAudio\] Destination: (?P<path>.+)$"),
    re.compile(r'^\[Merger\] Merging formats into "(?P<path>.+)"$'),
    re.compile(r"^\[download\] (?P<path>.+) has already been downloaded$"),
)


def parse_line(line: str) -> ParsedLine | None:
    text = line.strip()
    if not text.startswith("["):
        return None

    if match := _PROGRESS_RE.match(text):
        return ProgressUpdate(
            percent=float(match.group("percent")),
            total=match.group("total").strip(),
            speed=match.group("speed").strip(),
            eta=match.group("eta"),
        )

    for pattern in _DESTINATION_RES:
        if match := pattern.match(text):
            return DestinationAnnounced(path=match.group("path").strip())

    return None
