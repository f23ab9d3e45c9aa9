"""
Diagnostics: tool availability and version detection.
"""

import shutil
import logging
import subprocess

from tubeaudio.core.security_utils import run_subprocess_capture
from tubeaudio.core.constants import DEFAULT_YTDLP_BINARY, VERSION_TIMEOUT_SEC

logger = logging.getLogger(__name__)


def probe_availability(binary: str = DEFAULT_YTDLP_BINARY) -> bool:
    """True iff `<binary> --version` starts and exits 0."""
    try:
        result = run_subprocess_capture([binary, "--version"], timeout=VERSION_TIMEOUT_SEC)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("yt-dlp probe failed: %s", e)
        return False
    return result.returncode == 0


def get_ytdlp_version(binary: str = DEFAULT_YTDLP_BINARY) -> str:
    """Return yt-dlp version string, or error message."""
    try:
        result = run_subprocess_capture([binary, "--version"], timeout=VERSION_TIMEOUT_SEC)
        if result.returncode == 0:
            return result.stdout.strip()
        return f"Error (rc={result.returncode})"
    except FileNotFoundError:
        return "Not installed"
    except Exception as e:
        return f"Error: {e}"


def get_diagnostics(binary: str = DEFAULT_YTDLP_BINARY) -> dict:
    """Gather all diagnostic information."""
    return {
        "ytdlp_path": shutil.which(binary),
        "ytdlp_available": probe_availability(binary),
        "ytdlp_version": get_ytdlp_version(binary),
    }
