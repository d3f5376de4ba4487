import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tubefetch.config import Settings
from tubefetch.database import create_sqlite_engine
from tubefetch.routers import api_router
from tubefetch.services.events import EventBroker
from tubefetch.services.job_store import JobStore, MemoryJobStore, SqlJobStore
from tubefetch.services.orchestrator import DownloadOrchestrator
from tubefetch.ytdlp.runner import YtDlpRunner


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    for name in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


_configure_logging()
logger = logging.getLogger(__name__)


def _build_store(settings: Settings) -> JobStore:
    if settings.store_backend == "sqlite":
        return SqlJobStore(create_sqlite_engine(settings.db_path))
    return MemoryJobStore()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    settings.downloads_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Application started (downloads in %s)", settings.downloads_dir)
    yield
    logger.info("Shutting down...")
    try:
        await app.state.orchestrator.shutdown()
    except Exception:
        logger.exception("Failed to shutdown downloads")
    logger.info("Shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(
        title="TubeFetch",
        version="0.1.0",
        lifespan=lifespan,
    )

    runner = YtDlpRunner(
        settings.ytdlp_path,
        settings.downloads_dir,
        user_agent=settings.user_agent,
        probe_timeout=settings.probe_timeout,
        terminate_grace=settings.terminate_grace,
    )
    store = _build_store(settings)
    broker = EventBroker(settings.subscriber_queue_size)

    app.state.settings = settings
    app.state.runner = runner
    app.state.store = store
    app.state.broker = broker
    app.state.orchestrator = DownloadOrchestrator(
        store,
        runner,
        broker,
        terminate_on_cancel=settings.terminate_on_cancel,
        progress_publish_interval=settings.progress_publish_interval,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
