"""
Security utilities for tubeaudio.
- Safe subprocess execution (argument arrays only)
- Bounded capture of subprocess output
"""

import os
import subprocess
import tempfile
import logging

from tubeaudio.core.constants import MAX_CAPTURE_BYTES

logger = logging.getLogger(__name__)


# ── Subprocess safety ─────────────────────────────────────────────────

def run_subprocess(args: list[str], **kwargs) -> subprocess.CompletedProcess:
    """
    Execute a subprocess using argument arrays only.
    shell=True is explicitly forbidden.
    """
    if not isinstance(args, (list, tuple)):
        raise TypeError("Subprocess args must be a list/tuple, not a string")

    # Force shell=False; drop any caller-supplied value
    kwargs.pop('shell', None)

    logger.debug("Running subprocess: %s", ' '.join(str(a) for a in args))
    return subprocess.run(args, shell=False, **kwargs)


def _read_bounded(stream, max_bytes: int, tail: bool = False) -> str:
    """Read at most max_bytes from a spooled output file, head or tail."""
    size = stream.seek(0, os.SEEK_END)
    if tail and size > max_bytes:
        stream.seek(size - max_bytes)
    else:
        stream.seek(0)
    return stream.read(max_bytes).decode('utf-8', errors='replace')


def run_subprocess_capture(args: list[str], timeout: int = 300,
                           max_bytes: int = MAX_CAPTURE_BYTES,
                           **kwargs) -> subprocess.CompletedProcess:
    """
    Run subprocess and capture stdout/stderr.

    Output is spooled to temporary files, so a chatty process never grows
    memory; the returned text is the first max_bytes of stdout and the
    last max_bytes of stderr. On timeout the child is killed and
    subprocess.TimeoutExpired propagates.
    """
    with tempfile.TemporaryFile() as out, tempfile.TemporaryFile() as err:
        result = run_subprocess(args, stdout=out, stderr=err,
                                timeout=timeout, **kwargs)
        return subprocess.CompletedProcess(
            result.args,
            result.returncode,
            stdout=_read_bounded(out, max_bytes),
            stderr=_read_bounded(err, max_bytes, tail=True),
        )
