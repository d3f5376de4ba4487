import json
import stat
import sys
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tubefetch.config import Settings
from tubefetch.main import create_app
from tubefetch.services.events import EventBroker
from tubefetch.services.job_store import MemoryJobStore
from tubefetch.services.orchestrator import DownloadOrchestrator
from tubefetch.ytdlp.runner import YtDlpRunner

_SCRIPT_TEMPLATE = """#!{python}
import json
import pathlib
import sys
import time

here = pathlib.Path(__file__).parent
(here / "argv.json").write_text(json.dumps(sys.argv[1:]))
for line in {stdout!r}:
    print(line, flush=True)
    time.sleep({delay!r})
for path, content in {files!r}.items():
    pathlib.Path(path).write_bytes(content)
sys.stderr.write({stderr!r})
sys.exit({exit_code!r})
"""

FakeYtDlp = Callable[..., Path]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path / "data",
        ytdlp_path=str(tmp_path / "bin" / "yt-dlp"),
        terminate_grace=1.0,
        probe_timeout=10.0,
    )


@pytest.fixture
def fake_ytdlp(settings: Settings) -> FakeYtDlp:
    """Install a scripted stand-in for the yt-dlp executable.

    The script prints *stdout* lines, writes *files*, prints *stderr* and
    exits with *exit_code*. Its argv is saved next to it as ``argv.json``.
    """

    def _install(
        stdout: list[str] | None = None,
        *,
        stderr: str = "",
        exit_code: int = 0,
        files: dict[str, bytes] | None = None,
        delay: float = 0.0,
    ) -> Path:
        script = Path(settings.ytdlp_path)
        script.parent.mkdir(parents=True, exist_ok=True)
        script.write_text(
            _SCRIPT_TEMPLATE.format(
                python=sys.executable,
                stdout=stdout or [],
                stderr=stderr,
                exit_code=exit_code,
                files={str(k): v for k, v in (files or {}).items()},
                delay=delay,
            )
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return _install


@pytest.fixture
def recorded_argv(settings: Settings) -> Callable[[], list[str]]:
    """Arguments the fake yt-dlp was last invoked with."""

    def _read() -> list[str]:
        return json.loads((Path(settings.ytdlp_path).parent / "argv.json").read_text())

    return _read


@pytest.fixture
def runner(settings: Settings) -> YtDlpRunner:
    return YtDlpRunner(
        settings.ytdlp_path,
        settings.downloads_dir,
        user_agent=settings.user_agent,
        probe_timeout=settings.probe_timeout,
        terminate_grace=settings.terminate_grace,
    )


@pytest.fixture
def store() -> MemoryJobStore:
    return MemoryJobStore()


@pytest.fixture
def broker() -> EventBroker:
    return EventBroker()


@pytest.fixture
def orchestrator(
    store: MemoryJobStore, runner: YtDlpRunner, broker: EventBroker
) -> DownloadOrchestrator:
    return DownloadOrchestrator(store, runner, broker)


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc
