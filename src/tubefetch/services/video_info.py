"""Map a yt-dlp metadata document onto the analyzer response."""

import logging
from typing import Any

from tubefetch.constants import DESCRIPTION_MAX_CHARS, VIDEO_HEIGHTS, VIEWS_UNIT
from tubefetch.models.job import MediaFormat, Quality
from tubefetch.schemas.video import FormatOption, VideoInfo, VideoMetadata
from tubefetch.ytdlp.runner import YtDlpRunner

logger = logging.getLogger(__name__)

# Offered when the probe carries no stream list at all.
_FALLBACK_HEIGHT = 360


def _one_decimal(count: int, unit: int) -> str:
    # Truncate instead of rounding so 1999 reads "1.9K", never "2.0K".
    tenths = int(count) * 10 // unit
    return f"{tenths // 10}.{tenths % 10}"


def format_views(view_count: int | None) -> str:
    if not view_count:
        return f"0 {VIEWS_UNIT}"
    if view_count >= 1_000_000:
        return f"{_one_decimal(view_count, 1_000_000)}M {VIEWS_UNIT}"
    if view_count >= 1_000:
        return f"{_one_decimal(view_count, 1_000)}K {VIEWS_UNIT}"
    return f"{view_count} {VIEWS_UNIT}"


def _has_height(info: dict[str, Any], height: int) -> bool:
    streams = info.get("formats")
    if not streams:
        return height == _FALLBACK_HEIGHT
    for stream in streams:
        vcodec = stream.get("vcodec")
        stream_height = stream.get("height")
        if vcodec and vcodec != "none" and stream_height and stream_height >= height:
            return True
    return False


def available_formats(info: dict[str, Any]) -> list[FormatOption]:
    formats: list[FormatOption] = []
    for height in VIDEO_HEIGHTS:
        if _has_height(info, height):
            quality = f"{height}p"
            formats.append(FormatOption(format=MediaFormat.MP4, quality=quality))
            formats.append(FormatOption(format=MediaFormat.WEBM, quality=quality))
    formats.append(FormatOption(format=MediaFormat.MP3, quality=Quality.AUDIO))
    return formats


def build_video_info(url: str, info: dict[str, Any]) -> VideoInfo:
    description = info.get("description")
    return VideoInfo(
        title=info.get("title") or "Unknown Title",
        thumbnail=info.get("thumbnail") or "",
        duration=info.get("duration") or 0,
        uploader=info.get("uploader") or info.get("channel") or "Unknown",
        views=format_views(info.get("view_count")),
        formats=available_formats(info),
        metadata=VideoMetadata(
            original_url=url,
            platform=info.get("extractor_key") or "Unknown",
            upload_date=info.get("upload_date"),
            description=description[:DESCRIPTION_MAX_CHARS] if description else None,
        ),
    )


async def analyze_video(runner: YtDlpRunner, url: str) -> VideoInfo:
    """Probe *url* and describe it. Raises the runner's probe errors unchanged."""
    info = await runner.probe(url)
    logger.info("Analyzed %s: %s", url, info.get("title"))
    return build_video_info(url, info)
