from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    url: str = Field(min_length=1)


class FormatOption(BaseModel):
    format: str
    quality: str
    file_size: str | None = None


class VideoMetadata(BaseModel):
    original_url: str
    platform: str
    upload_date: str | None = None
    description: str | None = None


class VideoInfo(BaseModel):
    title: str
    thumbnail: str
    duration: float
    uploader: str
    views: str
    formats: list[FormatOption]
    metadata: VideoMetadata
