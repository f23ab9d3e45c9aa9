"""
Adapter over the yt-dlp command line.

Stateless apart from its settings; every call is one process invocation,
single attempt, no retry. The conversion manager takes an instance of this
(or anything with the same three methods) so tests can swap in a fake.
"""

import logging
from pathlib import Path

from tubeaudio.core.constants import (
    DEFAULT_YTDLP_BINARY, METADATA_TIMEOUT_SEC, DOWNLOAD_TIMEOUT_SEC,
    DEFAULT_AUDIO_QUALITY,
)
from tubeaudio.core.models import VideoMetadata
from tubeaudio.core.yt_metadata import fetch_metadata
from tubeaudio.core.download_audio import download_audio
from tubeaudio.core.diagnostics import probe_availability

logger = logging.getLogger(__name__)


class MediaToolAdapter:

    def __init__(self, binary: str = DEFAULT_YTDLP_BINARY,
                 metadata_timeout: int = METADATA_TIMEOUT_SEC,
                 download_timeout: int = DOWNLOAD_TIMEOUT_SEC):
        self.binary = binary
        self.metadata_timeout = metadata_timeout
        self.download_timeout = download_timeout

    @classmethod
    def from_config(cls, config) -> "MediaToolAdapter":
        return cls(
            binary=config.ytdlp_binary,
            metadata_timeout=config.get('metadata_timeout_sec', METADATA_TIMEOUT_SEC),
            download_timeout=config.get('download_timeout_sec', DOWNLOAD_TIMEOUT_SEC),
        )

    def fetch_metadata(self, video_url: str) -> VideoMetadata:
        return fetch_metadata(video_url, binary=self.binary, timeout=self.metadata_timeout)

    def download_audio(self, video_url: str, output_dir: Path,
                       quality: str = DEFAULT_AUDIO_QUALITY) -> Path:
        return download_audio(video_url, output_dir, quality,
                              binary=self.binary, timeout=self.download_timeout)

    def probe_availability(self) -> bool:
        return probe_availability(self.binary)
