"""
Audio download and transcode via yt-dlp.
"""

import logging
import subprocess
from pathlib import Path

from tubeaudio.core.security_utils import run_subprocess_capture
from tubeaudio.core.error_codes import ToolExecutionError, NoOutputError
from tubeaudio.core.constants import (
    DEFAULT_YTDLP_BINARY, AUDIO_FORMAT, AUDIO_EXTENSION, OUTPUT_TEMPLATE,
    DEFAULT_AUDIO_QUALITY, DOWNLOAD_TIMEOUT_SEC,
)

logger = logging.getLogger(__name__)


def find_audio_output(output_dir: Path, extension: str = AUDIO_EXTENSION) -> Path:
    """
    Locate the transcoded file in output_dir.
    When several match, the lexicographically smallest name wins.
    """
    matches = sorted(p for p in output_dir.glob(f"*{extension}") if p.is_file())
    if not matches:
        raise NoOutputError(f"No {extension.lstrip('.').upper()} file found after conversion")
    if len(matches) > 1:
        logger.warning("%d %s files in %s, using %s",
                       len(matches), extension, output_dir, matches[0].name)
    return matches[0].resolve()


def download_audio(video_url: str, output_dir: Path,
                   quality: str = DEFAULT_AUDIO_QUALITY,
                   binary: str = DEFAULT_YTDLP_BINARY,
                   timeout: int = DOWNLOAD_TIMEOUT_SEC) -> Path:
    """
    Download audio-only and transcode to MP3 using yt-dlp.
    The quality value goes to --audio-quality untouched.
    Returns the absolute path to the produced file.
    """
    output_template = str(output_dir / OUTPUT_TEMPLATE)

    args = [
        binary,
        "--extract-audio",
        "--audio-format", AUDIO_FORMAT,
        "--audio-quality", str(quality),
        "--output", output_template,
        "--no-warnings",
        "--no-playlist",
        "--embed-metadata",
        "--add-metadata",
        video_url,
    ]

    try:
        result = run_subprocess_capture(args, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise ToolExecutionError(f"yt-dlp download timed out after {timeout}s")
    except OSError as e:
        raise ToolExecutionError(f"yt-dlp could not be started: {e}")

    if result.returncode != 0:
        stderr = result.stderr or ""
        raise ToolExecutionError(f"yt-dlp failed: {stderr.strip()[:300]}",
                                 stderr=stderr, returncode=result.returncode)

    downloaded = find_audio_output(output_dir)
    logger.info("Downloaded audio: %s", downloaded)
    return downloaded
