"""Run yt-dlp as a subprocess for metadata probes and media fetches."""

import asyncio
import json
import logging
import os
import signal
import sys
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tubefetch.constants import FETCH_EXTRA_FLAGS, OUTPUT_TEMPLATE, RESILIENCE_FLAGS
from tubefetch.ytdlp.progress import DestinationAnnounced, ProgressUpdate, parse_line
from tubefetch.ytdlp.selectors import build_format_args

logger = logging.getLogger(__name__)

_STREAM_LIMIT = 1024 * 1024  # longest stdout line accepted from yt-dlp
_ERROR_MAX_CHARS = 500


class YtDlpError(Exception):
    pass


class ProbeFailedError(YtDlpError):
    pass


class MalformedMetadataError(YtDlpError):
    pass


class FetchFailedError(YtDlpError):
    pass


@dataclass(frozen=True, slots=True)
class FetchFinished:
    path: str


FetchEvent = ProgressUpdate | DestinationAnnounced | FetchFinished


def summarize_stderr(stderr: str, default: str) -> str:
    """Pick the most useful line out of yt-dlp's stderr.

    Prefers the first ``ERROR:`` line, falls back to the last non-empty line,
    and to *default* when stderr is empty.
    """
    lines = [line.strip() for line in stderr.strip().splitlines() if line.strip()]
    if not lines:
        return default
    for line in lines:
        if line.lower().startswith("error:"):
            return line[6:].strip()[:_ERROR_MAX_CHARS]
    return lines[-1][:_ERROR_MAX_CHARS]


class YtDlpRunner:
    def __init__(
        self,
        executable: str,
        downloads_dir: Path,
        *,
        user_agent: str,
        probe_timeout: float = 60.0,
        terminate_grace: float = 5.0,
    ) -> None:
        self._executable = executable
        self._downloads_dir = downloads_dir
        self._user_agent = user_agent
        self._probe_timeout = probe_timeout
        self._terminate_grace = terminate_grace

    def _common_args(self) -> list[str]:
        return ["--user-agent", self._user_agent, *RESILIENCE_FLAGS]

    def probe_command(self, url: str) -> list[str]:
        return [self._executable, "--dump-json", "--no-download", *self._common_args(), url]

    def fetch_command(self, url: str, media_format: str, quality: str) -> list[str]:
        output = str(self._downloads_dir / OUTPUT_TEMPLATE)
        return [
            self._executable,
            url,
            "-o",
            output,
            "--newline",
            *self._common_args(),
            *FETCH_EXTRA_FLAGS,
            *build_format_args(media_format, quality),
        ]

    async def _spawn(self, command: list[str]) -> asyncio.subprocess.Process:
        kwargs: dict[str, Any] = {}
        if sys.platform != "win32":
            # Own process group so post-processors (ffmpeg) die with yt-dlp.
            kwargs["start_new_session"] = True
        return await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=_STREAM_LIMIT,
            **kwargs,
        )

    async def _stop(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        logger.info("Terminating yt-dlp (PID: %d)", process.pid)
        try:
            if sys.platform == "win32":
                process.terminate()
            else:
                os.killpg(process.pid, signal.SIGTERM)
            await asyncio.wait_for(process.wait(), timeout=self._terminate_grace)
        except (TimeoutError, ProcessLookupError, OSError) as e:
            logger.warning("Graceful stop of PID %d failed: %s. Killing...", process.pid, e)
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    async def probe(self, url: str) -> dict[str, Any]:
        """Fetch the metadata document for *url* without downloading media."""
        try:
            process = await self._spawn(self.probe_command(url))
        except FileNotFoundError as e:
            logger.error("yt-dlp executable not found at: %s", self._executable)
            raise ProbeFailedError("yt-dlp executable not found") from e
        except OSError as e:
            raise ProbeFailedError(f"OS error: {e}") from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=self._probe_timeout
            )
        except TimeoutError:
            logger.error("yt-dlp probe timed out for %s", url)
            raise ProbeFailedError("Metadata probe timed out") from None
        finally:
            await self._stop(process)

        stdout = stdout_bytes.decode("utf-8", "replace")
        stderr = stderr_bytes.decode("utf-8", "replace")
        if process.returncode != 0:
            logger.warning("yt-dlp probe failed for %s: %s", url, stderr.strip())
            raise ProbeFailedError(
                summarize_stderr(stderr, f"yt-dlp exited with code {process.returncode}")
            )

        try:
            info = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise MalformedMetadataError(f"Failed to parse video info: {e}") from e
        if not isinstance(info, dict):
            raise MalformedMetadataError("Failed to parse video info: expected a JSON object")
        return info

    async def fetch(
        self, job_id: str, url: str, media_format: str, quality: str
    ) -> AsyncIterator[FetchEvent]:
        """Download *url*, yielding parsed events as yt-dlp prints them.

        The stream ends with a :class:`FetchFinished` carrying the announced
        destination (or the downloads directory when none was announced).
        Raises :class:`FetchFailedError` if yt-dlp cannot start or exits
        nonzero. Closing the iterator early stops the process.
        """
        self._downloads_dir.mkdir(parents=True, exist_ok=True)
        try:
            process = await self._spawn(self.fetch_command(url, media_format, quality))
        except FileNotFoundError as e:
            logger.error("yt-dlp executable not found at: %s", self._executable)
            raise FetchFailedError("yt-dlp executable not found") from e
        except OSError as e:
            raise FetchFailedError(f"OS error: {e}") from e

        logger.info("Started yt-dlp for job %s (PID: %d)", job_id, process.pid)
        assert process.stdout is not None
        assert process.stderr is not None
        stderr_task = asyncio.create_task(process.stderr.read())
        destination: str | None = None
        try:
            async for raw in process.stdout:
                line = raw.decode("utf-8", "replace").rstrip()
                logger.debug("[%s] %s", job_id, line)
                event = parse_line(line)
                if event is None:
                    continue
                if isinstance(event, DestinationAnnounced):
                    destination = event.path
                yield event
            returncode = await process.wait()
            stderr = (await stderr_task).decode("utf-8", "replace")
        finally:
            await self._stop(process)
            if not stderr_task.done():
                stderr_task.cancel()

        if returncode != 0:
            logger.warning("yt-dlp exited with %d for job %s", returncode, job_id)
            raise FetchFailedError(
                summarize_stderr(stderr, f"yt-dlp exited with code {returncode}")
            )
        yield FetchFinished(path=destination or str(self._downloads_dir))
