#!/usr/bin/env python3
"""
tubeaudio v1.0.0 — Main entry point.
Converts one video reference to MP3 from the command line.
"""

import sys
import time
import uuid
import shutil
import logging
import argparse
import traceback
from pathlib import Path
from datetime import datetime

# ── Determine project root ────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tubeaudio.core.constants import APP_NAME, APP_VERSION, JobStatus
from tubeaudio.core.config import AppConfig
from tubeaudio.core.diagnostics import get_diagnostics
from tubeaudio.core.job_queue import ConversionManager

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(APP_NAME)


def setup_logging(verbose: bool = False, log_file: Path | None = None):
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
    )


def check_prerequisites(config: AppConfig) -> bool:
    """Check that yt-dlp is on PATH."""
    found = shutil.which(config.ytdlp_binary)
    if not found:
        logger.error("Missing tool: %s (install with: pip install yt-dlp)", config.ytdlp_binary)
        return False
    logger.info("yt-dlp found at: %s", found)
    return True


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog=APP_NAME,
                                     description="Convert a video URL to an MP3 file.")
    parser.add_argument("url", nargs="?", help="video URL")
    parser.add_argument("--quality", help="value passed to yt-dlp --audio-quality")
    parser.add_argument("--temp-dir", type=Path, help="root directory for job files")
    parser.add_argument("--config", type=Path, help="JSON config file")
    parser.add_argument("--log-file", type=Path, help="also write logs to this file")
    parser.add_argument("--check", action="store_true", help="print tool diagnostics and exit")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> int:
    overrides = {}
    if args.temp_dir:
        overrides['temp_dir'] = str(args.temp_dir)
    config = AppConfig(args.config, **overrides)

    if args.check:
        for key, value in get_diagnostics(config.ytdlp_binary).items():
            print(f"{key}: {value}")
        return 0

    if not args.url:
        logger.error("No URL given")
        return 2

    if not check_prerequisites(config):
        return 1

    config.temp_dir.mkdir(parents=True, exist_ok=True)
    manager = ConversionManager(config)

    last_progress = -1

    def report(job):
        nonlocal last_progress
        if job.progress != last_progress:
            last_progress = job.progress
            print(f"{job.progress:3d}%  {job.stage}", flush=True)

    manager.on_job_updated = report
    job_id = str(uuid.uuid4())
    manager.submit(job_id, args.url, args.quality)
    job = manager.wait(job_id)

    if job is None or job.status != JobStatus.COMPLETED:
        print(f"Conversion failed: {job.error if job else 'job lost'}", file=sys.stderr)
        return 1

    print(manager.resolve_file(job.file_id))
    return 0


def main(argv: list[str] | None = None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)
    logger.info("%s v%s starting at %s", APP_NAME, APP_VERSION, datetime.now().isoformat())

    started = time.monotonic()
    try:
        code = run(args)
    except KeyboardInterrupt:
        code = 130
    except Exception as e:
        logger.critical("Fatal error: %s: %s\n%s", type(e).__name__, e, traceback.format_exc())
        code = 1
    logger.info("Finished in %.1fs", time.monotonic() - started)
    sys.exit(code)


if __name__ == "__main__":
    main()
