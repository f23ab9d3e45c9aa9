"""
Shared constants for tubeaudio.
Imported by every other module.
"""

import pathlib

# ── Application identity ──────────────────────────────────────────────
APP_NAME = "tubeaudio"
APP_VERSION = "1.0.0"

# ── Filesystem paths ─────────────────────────────────────────────────
DEFAULT_TEMP_DIR = pathlib.Path("./temp")

# ── External tool ─────────────────────────────────────────────────────
DEFAULT_YTDLP_BINARY = "yt-dlp"

# One line, eight positional fields. A '|' inside the title or the
# description shifts every later field.
METADATA_FIELD_SEPARATOR = "|"
METADATA_PRINT_TEMPLATE = METADATA_FIELD_SEPARATOR.join([
    "%(id)s",
    "%(title)s",
    "%(thumbnail)s",
    "%(duration)s",
    "%(channel)s",
    "%(description)s",
    "%(view_count)s",
    "%(upload_date)s",
])
METADATA_FIELD_COUNT = 8

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_CHANNEL = "Unknown Channel"

AUDIO_FORMAT = "mp3"
AUDIO_EXTENSION = ".mp3"
OUTPUT_TEMPLATE = "%(title)s.%(ext)s"
DEFAULT_AUDIO_QUALITY = "320"

# Upper bound on captured stdout/stderr per invocation
MAX_CAPTURE_BYTES = 64 * 1024

METADATA_TIMEOUT_SEC = 60
DOWNLOAD_TIMEOUT_SEC = 600
VERSION_TIMEOUT_SEC = 10

# ── Job status values ─────────────────────────────────────────────────
class JobStatus:
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)

# ── Job stage values (ordered) ────────────────────────────────────────
class JobStage:
    CREATED = "CREATED"
    METADATA_FETCHED = "METADATA_FETCHED"
    METADATA_RECORDED = "METADATA_RECORDED"
    WORKDIR_READY = "WORKDIR_READY"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

# ── Error codes ───────────────────────────────────────────────────────
class ErrorCode:
    TOOL_EXECUTION = "ERR_TOOL_EXECUTION"
    METADATA_PARSE = "ERR_METADATA_PARSE"
    NO_OUTPUT = "ERR_NO_OUTPUT"
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"
    UNEXPECTED = "ERR_UNEXPECTED"

# ── Progress mapping ─────────────────────────────────────────────────
PROGRESS_CREATED = 0
PROGRESS_METADATA_FETCHED = 20
PROGRESS_METADATA_RECORDED = 40
PROGRESS_WORKDIR_READY = 60
PROGRESS_COMPLETED = 100

# ── Cleanup defaults ──────────────────────────────────────────────────
CLEANUP_INTERVAL_SEC = 3600
CLEANUP_INITIAL_DELAY_SEC = 10
MAX_FILE_AGE_SEC = 3600
