"""Drive download jobs through their lifecycle.

pending -> processing -> completed | error, with cancellation removing the
record outright. Every transition is written to the job store first and then
published to realtime subscribers. Writes are conditional on the job still
being active, so events arriving after cancellation or after a terminal
state are dropped.
"""

import asyncio
import logging
import math
from contextlib import aclosing
from functools import partial
from pathlib import Path

from tubefetch.models.job import ACTIVE_STATUSES, DownloadJob, JobStatus, MediaFormat, Quality
from tubefetch.schemas.events import EventKind
from tubefetch.services.events import EventBroker
from tubefetch.services.job_store import JobStore
from tubefetch.ytdlp.progress import DestinationAnnounced, ProgressUpdate
from tubefetch.ytdlp.runner import FetchFailedError, FetchFinished, YtDlpRunner

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Unknown download error"
INTERRUPTED_ERROR = "Download interrupted"

_PROCESSING = frozenset({JobStatus.PROCESSING})
_PENDING = frozenset({JobStatus.PENDING})


def _round_percent(value: float) -> int:
    # Half-up; clamp to the valid range.
    return min(100, max(0, math.floor(value + 0.5)))


class DownloadOrchestrator:
    def __init__(
        self,
        store: JobStore,
        runner: YtDlpRunner,
        broker: EventBroker,
        *,
        terminate_on_cancel: bool = True,
        progress_publish_interval: float = 0.0,
    ) -> None:
        self._store = store
        self._runner = runner
        self._broker = broker
        self._terminate_on_cancel = terminate_on_cancel
        self._publish_interval = progress_publish_interval
        # Strong references to background tasks (prevent GC mid-execution)
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def active_job_ids(self) -> list[str]:
        return [job_id for job_id, task in self._tasks.items() if not task.done()]

    def submit(self, url: str, media_format: MediaFormat, quality: Quality) -> DownloadJob:
        """Create a job and start fetching it in the background.

        Returns the job immediately, still ``pending``.
        """
        job = self._store.create(url, media_format, quality)
        logger.info("Job %s created for %s (%s %s)", job.id, url, media_format, quality)
        task = asyncio.create_task(self.run(job.id), name=f"download-{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(partial(self._task_done, job.id))
        return job

    def _task_done(self, job_id: str, task: asyncio.Task[None]) -> None:
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]
        if task.cancelled():
            return
        if exc := task.exception():
            logger.error("Background task for job %s crashed", job_id, exc_info=exc)

    async def run(self, job_id: str) -> None:
        job = self._store.update(job_id, {"status": JobStatus.PROCESSING}, when=_PENDING)
        if job is None:
            logger.info("Job %s is gone or already started; skipping", job_id)
            return
        self._broker.publish(EventKind.UPDATED, job_id=job_id, status=job.status)

        loop = asyncio.get_running_loop()
        last_publish = -math.inf
        flush: asyncio.TimerHandle | None = None

        def publish_latest() -> None:
            # A reading held back by the throttle goes out once its window closes.
            nonlocal flush, last_publish
            flush = None
            current = self._store.get(job_id)
            if current is not None and current.status == JobStatus.PROCESSING:
                last_publish = loop.time()
                self._publish_progress(current)

        try:
            events = self._runner.fetch(job_id, job.url, job.format, job.quality)
            async with aclosing(events):
                async for event in events:
                    if isinstance(event, ProgressUpdate):
                        now = loop.time()
                        publish = now - last_publish >= self._publish_interval
                        if publish:
                            last_publish = now
                            if flush is not None:
                                flush.cancel()
                                flush = None
                        applied = self.handle_progress(job_id, event, publish=publish)
                        if applied is not None and not publish and flush is None:
                            delay = last_publish + self._publish_interval - now
                            flush = loop.call_later(delay, publish_latest)
                    elif isinstance(event, DestinationAnnounced):
                        applied = self.handle_destination(job_id, event.path)
                    elif isinstance(event, FetchFinished):
                        applied = self.handle_completed(job_id, event.path)
                    else:
                        continue

                    if applied is None and self._terminate_on_cancel:
                        logger.info("Job %s no longer active; stopping fetch", job_id)
                        break
        except asyncio.CancelledError:
            self.handle_failed(job_id, INTERRUPTED_ERROR)
            raise
        except FetchFailedError as e:
            self.handle_failed(job_id, str(e))
        except Exception as e:
            logger.exception("Unexpected error during download for job %s", job_id)
            self.handle_failed(job_id, str(e))
        finally:
            if flush is not None:
                flush.cancel()

    def handle_progress(
        self, job_id: str, update: ProgressUpdate, *, publish: bool = True
    ) -> DownloadJob | None:
        current = self._store.get(job_id)
        if current is None or current.status != JobStatus.PROCESSING:
            return None
        percent = max(current.progress, _round_percent(update.percent))
        job = self._store.update(
            job_id,
            {
                "progress": percent,
                "speed": update.speed,
                "total_size": update.total,
                "eta": update.eta,
            },
            when=_PROCESSING,
        )
        if job is not None and publish:
            self._publish_progress(job)
        return job

    def handle_destination(self, job_id: str, path: str) -> DownloadJob | None:
        return self._store.update(job_id, {"title": Path(path).stem}, when=_PROCESSING)

    def handle_completed(self, job_id: str, path: str) -> DownloadJob | None:
        current = self._store.get(job_id)
        if current is None:
            return None
        job = self._store.update(
            job_id,
            {"status": JobStatus.COMPLETED, "progress": 100, "file_path": path},
            when=_PROCESSING,
        )
        if job is None:
            return None
        logger.info("Job %s completed: %s", job_id, path)
        if current.progress < 100:
            # yt-dlp's last progress line can lag the actual end of the download.
            self._publish_progress(job)
        self._broker.publish(EventKind.COMPLETED, job_id=job_id, file_path=path)
        return job

    def handle_failed(self, job_id: str, message: str) -> DownloadJob | None:
        message = message.strip() or GENERIC_ERROR
        job = self._store.update(
            job_id,
            {"status": JobStatus.ERROR, "error_message": message},
            when=ACTIVE_STATUSES,
        )
        if job is None:
            logger.debug("Dropping failure for inactive job %s: %s", job_id, message)
            return None
        logger.warning("Job %s failed: %s", job_id, message)
        self._broker.publish(EventKind.ERROR, job_id=job_id, error=message)
        return job

    def _publish_progress(self, job: DownloadJob) -> None:
        self._broker.publish(
            EventKind.PROGRESS,
            job_id=job.id,
            percent=job.progress,
            speed=job.speed,
            downloaded=job.downloaded_size,
            total=job.total_size,
            eta=job.eta,
        )

    def cancel(self, job_id: str) -> bool:
        """Delete the job and tell subscribers. Returns False for unknown ids."""
        if not self._store.delete(job_id):
            return False
        logger.info("Job %s cancelled", job_id)
        self._broker.publish(EventKind.CANCELLED, job_id=job_id)
        task = self._tasks.get(job_id)
        if self._terminate_on_cancel and task is not None and not task.done():
            task.cancel()
        return True

    async def shutdown(self) -> None:
        tasks = [t for t in self._tasks.values() if not t.done()]
        if not tasks:
            return
        logger.info("Cancelling %d running download(s)", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
