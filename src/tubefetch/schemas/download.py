from datetime import datetime

from pydantic import BaseModel, Field

from tubefetch.models.job import DownloadJob, JobStatus, MediaFormat, Quality


class DownloadRequest(BaseModel):
    url: str = Field(min_length=1)
    format: MediaFormat
    quality: Quality


class DownloadJobOut(BaseModel):
    id: str
    url: str
    format: MediaFormat
    quality: Quality
    status: JobStatus
    progress: int
    speed: str | None
    downloaded_size: str | None
    total_size: str | None
    eta: str | None
    title: str | None
    file_path: str | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: DownloadJob) -> "DownloadJobOut":
        return cls.model_validate(job.model_dump())


class CancelResult(BaseModel):
    message: str
