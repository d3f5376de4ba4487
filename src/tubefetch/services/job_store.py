"""Keyed registries of download jobs.

Both stores hand out snapshots: a returned job is a copy, so callers must go
through ``update`` to change stored state. All mutations for an id run under
one lock, which makes the read-merge-write in ``update`` atomic.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Collection, Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Engine, literal_column
from sqlmodel import Session, col, select

from tubefetch.database import create_db_and_tables
from tubefetch.models.job import (
    DownloadJob,
    DownloadJobRecord,
    JobStatus,
    MediaFormat,
    Quality,
)

_IMMUTABLE_FIELDS = frozenset({"id", "url", "format", "quality", "created_at"})


class JobStore(ABC):
    @abstractmethod
    def create(self, url: str, media_format: MediaFormat, quality: Quality) -> DownloadJob: ...

    @abstractmethod
    def get(self, job_id: str) -> DownloadJob | None: ...

    @abstractmethod
    def update(
        self,
        job_id: str,
        changes: Mapping[str, Any],
        *,
        when: Collection[JobStatus] | None = None,
    ) -> DownloadJob | None:
        """Merge *changes* into the job and bump ``updated_at``.

        Returns ``None`` when the id is unknown, or when *when* is given and
        the current status is not in it.
        """

    @abstractmethod
    def delete(self, job_id: str) -> bool: ...

    @abstractmethod
    def list_jobs(self, status: JobStatus | None = None) -> list[DownloadJob]:
        """All jobs, newest first, optionally restricted to one status."""


def _check_changes(changes: Mapping[str, Any]) -> None:
    frozen = _IMMUTABLE_FIELDS.intersection(changes)
    if frozen:
        raise ValueError(f"Immutable job fields cannot be updated: {sorted(frozen)}")


class MemoryJobStore(JobStore):
    def __init__(self) -> None:
        self._jobs: dict[str, DownloadJob] = {}
        self._lock = threading.Lock()

    def create(self, url: str, media_format: MediaFormat, quality: Quality) -> DownloadJob:
        with self._lock:
            job = DownloadJob(url=url, format=media_format, quality=quality)
            while job.id in self._jobs:
                job = DownloadJob(url=url, format=media_format, quality=quality)
            self._jobs[job.id] = job
            return job.model_copy()

    def get(self, job_id: str) -> DownloadJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job else None

    def update(
        self,
        job_id: str,
        changes: Mapping[str, Any],
        *,
        when: Collection[JobStatus] | None = None,
    ) -> DownloadJob | None:
        _check_changes(changes)
        with self._lock:
            existing = self._jobs.get(job_id)
            if existing is None:
                return None
            if when is not None and existing.status not in when:
                return None
            updated = existing.model_copy(update={**changes, "updated_at": datetime.now(UTC)})
            self._jobs[job_id] = updated
            return updated.model_copy()

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def list_jobs(self, status: JobStatus | None = None) -> list[DownloadJob]:
        with self._lock:
            jobs = [j.model_copy() for j in reversed(self._jobs.values())]
        if status is not None:
            jobs = [j for j in jobs if j.status == status]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs


class SqlJobStore(JobStore):
    """SQLite-backed store; a drop-in replacement for :class:`MemoryJobStore`."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        create_db_and_tables(engine)

    def create(self, url: str, media_format: MediaFormat, quality: Quality) -> DownloadJob:
        job = DownloadJob(url=url, format=media_format, quality=quality)
        with self._lock, Session(self._engine) as session:
            while session.get(DownloadJobRecord, job.id) is not None:
                job = DownloadJob(url=url, format=media_format, quality=quality)
            session.add(DownloadJobRecord.from_job(job))
            session.commit()
        return job

    def get(self, job_id: str) -> DownloadJob | None:
        with Session(self._engine) as session:
            record = session.get(DownloadJobRecord, job_id)
            return record.to_job() if record else None

    def update(
        self,
        job_id: str,
        changes: Mapping[str, Any],
        *,
        when: Collection[JobStatus] | None = None,
    ) -> DownloadJob | None:
        _check_changes(changes)
        with self._lock, Session(self._engine) as session:
            record = session.get(DownloadJobRecord, job_id)
            if record is None:
                return None
            if when is not None and JobStatus(record.status) not in when:
                return None
            for key, value in changes.items():
                setattr(record, key, value)
            record.updated_at = datetime.now(UTC)
            session.add(record)
            session.commit()
            session.refresh(record)
            return record.to_job()

    def delete(self, job_id: str) -> bool:
        with self._lock, Session(self._engine) as session:
            record = session.get(DownloadJobRecord, job_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    def list_jobs(self, status: JobStatus | None = None) -> list[DownloadJob]:
        stmt = select(DownloadJobRecord)
        if status is not None:
            stmt = stmt.where(DownloadJobRecord.status == status)
        stmt = stmt.order_by(
            col(DownloadJobRecord.created_at).desc(), literal_column("rowid").desc()
        )
        with Session(self._engine) as session:
            return [r.to_job() for r in session.exec(stmt).all()]
