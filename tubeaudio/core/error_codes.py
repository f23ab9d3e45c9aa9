"""
Standardised error handling for tubeaudio.
"""

from tubeaudio.core.constants import ErrorCode


class JobError(Exception):
    """Raised when a job encounters a known error condition."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ToolExecutionError(JobError):
    """yt-dlp could not be run, timed out, or exited non-zero."""

    def __init__(self, message: str, stderr: str = "", returncode: int | None = None):
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(ErrorCode.TOOL_EXECUTION, message)


class MetadataParseError(JobError):
    def __init__(self, message: str):
        super().__init__(ErrorCode.METADATA_PARSE, message)


class NoOutputError(JobError):
    def __init__(self, message: str):
        super().__init__(ErrorCode.NO_OUTPUT, message)


class InvalidTransitionError(JobError):
    """A job state change that the state machine does not allow."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.INVALID_TRANSITION, message)


def error_message(error: Exception) -> str:
    """Human-readable message for a job record, without the code prefix."""
    if isinstance(error, JobError):
        return error.message
    return str(error) or type(error).__name__
