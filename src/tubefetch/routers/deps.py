"""Shared FastAPI dependencies used across routers.

Services are built once by ``create_app`` and hung off ``app.state``.
"""

from fastapi import Depends, HTTPException
from starlette.requests import HTTPConnection

from tubefetch.config import Settings
from tubefetch.models.job import DownloadJob
from tubefetch.services.events import EventBroker
from tubefetch.services.job_store import JobStore
from tubefetch.services.orchestrator import DownloadOrchestrator
from tubefetch.ytdlp.runner import YtDlpRunner


def get_settings(conn: HTTPConnection) -> Settings:
    return conn.app.state.settings


def get_store(conn: HTTPConnection) -> JobStore:
    return conn.app.state.store


def get_runner(conn: HTTPConnection) -> YtDlpRunner:
    return conn.app.state.runner


def get_broker(conn: HTTPConnection) -> EventBroker:
    return conn.app.state.broker


def get_orchestrator(conn: HTTPConnection) -> DownloadOrchestrator:
    return conn.app.state.orchestrator


def get_job_or_404(job_id: str, store: JobStore = Depends(get_store)) -> DownloadJob:
    """Look up a job by id, raising 404 if not found."""
    job = store.get(job_id)
    if job is None:
        raise HTTPException(404, "Download not found")
    return job
