"""Entry point for standalone backend process."""

import uvicorn

from tubefetch.config import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run(
        "tubefetch.main:app",
        host=settings.host,
        port=settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
