"""Map a requested format/quality pair onto yt-dlp selection arguments.

Single-file streams (``b``) are preferred over separate audio+video streams
so that no ffmpeg merge step is needed after the download.
"""

from tubefetch.models.job import MediaFormat, Quality


def _height(quality: str) -> str:
    return quality.removesuffix("p")


def build_format_args(media_format: str, quality: str) -> list[str]:
    if media_format == MediaFormat.MP3:
        return ["-x", "--audio-format", "mp3", "--audio-quality", "0"]
    if media_format == MediaFormat.MP4:
        if quality == Quality.AUDIO:
            return ["-f", "ba[ext=m4a]/ba/best"]
        h = _height(quality)
        return ["-f", f"b[ext=mp4][height<={h}]/b[ext=mp4]/b"]
    if media_format == MediaFormat.WEBM:
        if quality == Quality.AUDIO:
            return ["-f", "ba[ext=webm]/ba/best"]
        h = _height(quality)
        return ["-f", f"b[ext=webm][height<={h}]/b[ext=webm]/b"]
    return ["-f", "b/best"]
