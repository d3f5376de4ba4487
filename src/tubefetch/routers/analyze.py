import logging

from fastapi import APIRouter, Depends, HTTPException

from tubefetch.routers.deps import get_runner
from tubefetch.schemas.video import AnalyzeRequest, VideoInfo
from tubefetch.services.video_info import analyze_video
from tubefetch.ytdlp.runner import MalformedMetadataError, ProbeFailedError, YtDlpRunner

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analyze"])


@router.post("/analyze", response_model=VideoInfo)
async def analyze(body: AnalyzeRequest, runner: YtDlpRunner = Depends(get_runner)) -> VideoInfo:
    """Probe a URL and list the formats it can be downloaded in. No job is created."""
    try:
        return await analyze_video(runner, body.url)
    except MalformedMetadataError as e:
        logger.warning("Malformed metadata for %s: %s", body.url, e)
        raise HTTPException(400, f"Could not read video metadata: {e}") from e
    except ProbeFailedError as e:
        raise HTTPException(400, f"Failed to analyze video: {e}") from e
