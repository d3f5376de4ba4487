from tubefetch.models.job import (
    ACTIVE_STATUSES,
    DownloadJob,
    DownloadJobRecord,
    JobStatus,
    MediaFormat,
    Quality,
)

__all__ = [
    "ACTIVE_STATUSES",
    "DownloadJob",
    "DownloadJobRecord",
    "JobStatus",
    "MediaFormat",
    "Quality",
]
