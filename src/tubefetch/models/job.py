import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field as PydanticField
from sqlmodel import Field, SQLModel


class JobStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


ACTIVE_STATUSES = frozenset({JobStatus.PENDING, JobStatus.PROCESSING})


class MediaFormat(StrEnum):
    MP4 = "mp4"
    MP3 = "mp3"
    WEBM = "webm"


class Quality(StrEnum):
    P1080 = "1080p"
    P720 = "720p"
    P480 = "480p"
    P360 = "360p"
    AUDIO = "audio"


def _now() -> datetime:
    return datetime.now(UTC)


class DownloadJob(BaseModel):
    """One tracked download request and its evolving state."""

    id: str = PydanticField(default_factory=lambda: str(uuid.uuid4()))
    url: str
    format: MediaFormat
    quality: Quality
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    speed: str | None = None
    downloaded_size: str | None = None
    total_size: str | None = None
    eta: str | None = None
    title: str | None = None
    file_path: str | None = None
    error_message: str | None = None
    created_at: datetime = PydanticField(default_factory=_now)
    updated_at: datetime = PydanticField(default_factory=_now)


class DownloadJobRecord(SQLModel, table=True):
    __tablename__ = "download_jobs"

    id: str = Field(primary_key=True)
    url: str
    format: str
    quality: str
    status: str = Field(default="pending", index=True)
    progress: int = 0
    speed: str | None = None
    downloaded_size: str | None = None
    total_size: str | None = None
    eta: str | None = None
    title: str | None = None
    file_path: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=_now, index=True)
    updated_at: datetime = Field(default_factory=_now)

    @classmethod
    def from_job(cls, job: DownloadJob) -> "DownloadJobRecord":
        return cls(**job.model_dump())

    def to_job(self) -> DownloadJob:
        return DownloadJob.model_validate(self.model_dump())
