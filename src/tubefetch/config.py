import os
import sys
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tubefetch.constants import DEFAULT_USER_AGENT


def _default_data_dir() -> Path:
    if env := os.environ.get("TUBEFETCH_DATA_DIR"):
        return Path(env)
    if sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "tubefetch"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TUBEFETCH_",
        extra="ignore",
    )

    data_dir: Path = Path("")
    downloads_dir: Path = Path("")
    db_path: Path = Path("")
    store_backend: Literal["memory", "sqlite"] = "memory"
    ytdlp_path: str = "yt-dlp"
    user_agent: str = DEFAULT_USER_AGENT
    probe_timeout: float = 60.0
    terminate_on_cancel: bool = True
    terminate_grace: float = 5.0
    progress_publish_interval: float = 0.0
    subscriber_queue_size: int = 256
    cors_origins: list[str] = ["*"]
    host: str = "127.0.0.1"
    port: int = 8425

    @model_validator(mode="after")
    def _resolve_data_paths(self) -> "Settings":
        if self.data_dir == Path(""):
            self.data_dir = _default_data_dir()
        if self.downloads_dir == Path(""):
            self.downloads_dir = self.data_dir / "downloads"
        if self.db_path == Path(""):
            self.db_path = self.data_dir / "tubefetch.db"
        return self
