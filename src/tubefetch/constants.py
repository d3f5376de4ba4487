DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

# Heights offered by the analyzer, highest first.
VIDEO_HEIGHTS = (1080, 720, 480, 360)

OUTPUT_TEMPLATE = "%(title)s.%(ext)s"

# Applied to every yt-dlp invocation after --user-agent.
RESILIENCE_FLAGS = [
    "--sleep-interval",
    "1",
    "-R",
    "3",
    "--retry-sleep",
    "1:5",
    "--extractor-retries",
    "3",
    "--geo-bypass",
]

# Fetch-only additions: cap the randomized sleep and download fragments in parallel.
FETCH_EXTRA_FLAGS = ["--max-sleep-interval", "5", "-N", "4"]

CONTENT_TYPES: dict[str, str] = {
    ".mp4": "video/mp4",
    ".mp3": "audio/mpeg",
    ".webm": "video/webm",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

VIEWS_UNIT = "visualizaciones"
DESCRIPTION_MAX_CHARS = 500
