import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from tubefetch.config import Settings
from tubefetch.constants import CONTENT_TYPES, DEFAULT_CONTENT_TYPE
from tubefetch.models.job import DownloadJob, JobStatus
from tubefetch.routers.deps import get_job_or_404, get_orchestrator, get_settings, get_store
from tubefetch.schemas.download import CancelResult, DownloadJobOut, DownloadRequest
from tubefetch.services.job_store import JobStore
from tubefetch.services.orchestrator import DownloadOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/downloads", tags=["downloads"])


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)


@router.post("", response_model=DownloadJobOut)
async def start_download(
    body: DownloadRequest,
    orchestrator: DownloadOrchestrator = Depends(get_orchestrator),
) -> DownloadJobOut:
    """Create a job and return it right away; the fetch runs in the background."""
    job = orchestrator.submit(body.url, body.format, body.quality)
    return DownloadJobOut.from_job(job)


@router.get("", response_model=list[DownloadJobOut])
async def list_downloads(
    status: JobStatus | None = Query(default=None),
    store: JobStore = Depends(get_store),
) -> list[DownloadJobOut]:
    return [DownloadJobOut.from_job(j) for j in store.list_jobs(status)]


@router.get("/{job_id}", response_model=DownloadJobOut)
async def get_download(job: DownloadJob = Depends(get_job_or_404)) -> DownloadJobOut:
    return DownloadJobOut.from_job(job)


@router.delete("/{job_id}", response_model=CancelResult)
async def cancel_download(
    job_id: str,
    orchestrator: DownloadOrchestrator = Depends(get_orchestrator),
) -> CancelResult:
    if not orchestrator.cancel(job_id):
        raise HTTPException(404, "Download not found")
    return CancelResult(message="Download cancelled")


@router.get("/{job_id}/file")
async def download_file(
    job_id: str,
    store: JobStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> FileResponse:
    job = store.get(job_id)
    if job is None or job.status != JobStatus.COMPLETED or not job.file_path:
        raise HTTPException(404, "File not available")

    # Only the base name is trusted; the file must live in the downloads dir.
    file_name = Path(job.file_path).name
    path = settings.downloads_dir / file_name
    if not file_name or not path.is_file():
        logger.warning("Job %s is completed but %s is missing", job_id, path)
        raise HTTPException(404, "File not found")

    return FileResponse(path, media_type=content_type_for(path), filename=file_name)
