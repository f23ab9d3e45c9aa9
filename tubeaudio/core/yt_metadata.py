"""
Video metadata fetching via yt-dlp.
"""

import logging
import subprocess

from tubeaudio.core.security_utils import run_subprocess_capture
from tubeaudio.core.error_codes import ToolExecutionError, MetadataParseError
from tubeaudio.core.models import VideoMetadata
from tubeaudio.core.constants import (
    DEFAULT_YTDLP_BINARY, METADATA_PRINT_TEMPLATE, METADATA_FIELD_SEPARATOR,
    METADATA_FIELD_COUNT, METADATA_TIMEOUT_SEC, UNKNOWN_TITLE, UNKNOWN_CHANNEL,
)

logger = logging.getLogger(__name__)


def _parse_int(value: str) -> int:
    """Leading integer of value, or 0 ("NA", "", "12.5" → 0, 0, 12)."""
    value = value.strip()
    digits = ""
    for ch in value:
        if ch.isdigit() or (ch == '-' and not digits):
            digits += ch
        else:
            break
    try:
        return max(0, int(digits))
    except ValueError:
        return 0


def parse_metadata_line(output: str) -> VideoMetadata:
    """
    Split the --print line into its eight positional fields.

    Missing or unparseable optional fields fall back to defaults; only a
    completely empty output is an error.
    """
    text = output.strip()
    if not text:
        raise MetadataParseError("yt-dlp printed no metadata")

    # The description may span several lines; split the whole output
    fields = text.split(METADATA_FIELD_SEPARATOR)
    if len(fields) != METADATA_FIELD_COUNT:
        logger.debug("Metadata line has %d fields, expected %d",
                     len(fields), METADATA_FIELD_COUNT)
    fields += [""] * (METADATA_FIELD_COUNT - len(fields))

    video_id, title, thumbnail, duration, channel, description, view_count, upload_date = \
        fields[:METADATA_FIELD_COUNT]

    return VideoMetadata(
        id=video_id,
        title=title or UNKNOWN_TITLE,
        thumbnail=thumbnail,
        duration=_parse_int(duration),
        channel=channel or UNKNOWN_CHANNEL,
        description=description,
        view_count=_parse_int(view_count),
        upload_date=upload_date,
    )


def fetch_metadata(video_url: str, binary: str = DEFAULT_YTDLP_BINARY,
                   timeout: int = METADATA_TIMEOUT_SEC) -> VideoMetadata:
    """Fetch video metadata using a single yt-dlp --print invocation."""
    args = [
        binary,
        "--print", METADATA_PRINT_TEMPLATE,
        "--no-warnings",
        "--no-playlist",
        video_url,
    ]

    try:
        result = run_subprocess_capture(args, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise ToolExecutionError(f"yt-dlp metadata fetch timed out after {timeout}s")
    except OSError as e:
        raise ToolExecutionError(f"yt-dlp could not be started: {e}")

    if result.returncode != 0:
        stderr = result.stderr or ""
        raise ToolExecutionError(f"yt-dlp failed: {stderr.strip()[:300]}",
                                 stderr=stderr, returncode=result.returncode)

    return parse_metadata_line(result.stdout or "")
