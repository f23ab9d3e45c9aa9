"""
Data models (plain dataclasses) for tubeaudio.

Job records are immutable snapshots: every state change builds a new
instance, so whatever a reader holds is internally consistent.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional

from tubeaudio.core.constants import JobStatus, JobStage, TERMINAL_STATUSES


@dataclass(frozen=True)
class VideoMetadata:
    id: str
    title: str
    thumbnail: str = ""
    duration: int = 0                # seconds
    channel: str = ""
    description: str = ""
    view_count: int = 0
    upload_date: str = ""            # YYYYMMDD as printed by yt-dlp


@dataclass(frozen=True)
class Job:
    id: str
    source_url: str
    created_at: float                # clock seconds, basis for eviction age
    quality: str = ""
    status: str = JobStatus.PROCESSING
    stage: str = JobStage.CREATED
    progress: int = 0
    metadata: Optional[VideoMetadata] = None
    file_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    updated_at: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def as_dict(self) -> dict:
        """Plain dict for status responses; timestamps rendered as ISO-8601."""
        data = asdict(self)
        for key in ('created_at', 'updated_at'):
            if data[key] is not None:
                data[key] = datetime.fromtimestamp(
                    data[key], tz=timezone.utc
                ).isoformat()
        return data
