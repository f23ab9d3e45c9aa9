"""
Application configuration manager.
Defaults, optionally overlaid by a JSON file, then by environment variables.
"""

import os
import json
import logging
from pathlib import Path

from tubeaudio.core.constants import (
    DEFAULT_TEMP_DIR, DEFAULT_YTDLP_BINARY, DEFAULT_AUDIO_QUALITY,
    CLEANUP_INTERVAL_SEC, CLEANUP_INITIAL_DELAY_SEC, MAX_FILE_AGE_SEC,
    METADATA_TIMEOUT_SEC, DOWNLOAD_TIMEOUT_SEC,
)

# Validation bounds
_INTERVAL_MIN = 1             # 1 second
_TIMEOUT_MIN = 5
_TIMEOUT_MAX = 6 * 3600

logger = logging.getLogger(__name__)

_DEFAULTS = {
    'temp_dir': str(DEFAULT_TEMP_DIR),
    'cleanup_interval_sec': CLEANUP_INTERVAL_SEC,
    'cleanup_initial_delay_sec': CLEANUP_INITIAL_DELAY_SEC,
    'max_file_age_sec': MAX_FILE_AGE_SEC,
    'default_quality': DEFAULT_AUDIO_QUALITY,
    'ytdlp_binary': DEFAULT_YTDLP_BINARY,
    'metadata_timeout_sec': METADATA_TIMEOUT_SEC,
    'download_timeout_sec': DOWNLOAD_TIMEOUT_SEC,
    'evict_processing_jobs': True,
}

# Environment variable → (config key, divisor). Durations arrive in milliseconds.
_ENV_OVERRIDES = {
    'TEMP_DIR': ('temp_dir', None),
    'CLEANUP_INTERVAL': ('cleanup_interval_sec', 1000),
    'CLEANUP_INITIAL_DELAY': ('cleanup_initial_delay_sec', 1000),
    'MAX_FILE_AGE': ('max_file_age_sec', 1000),
    'DEFAULT_AUDIO_QUALITY': ('default_quality', None),
    'YTDLP_BINARY': ('ytdlp_binary', None),
}


class AppConfig:
    """Manages application configuration, optionally stored as JSON."""

    def __init__(self, config_path: Path | None = None, environ: dict | None = None,
                 **overrides):
        self.path = config_path
        self._environ = os.environ if environ is None else environ
        self._data: dict = {}
        self.load()
        for key, value in overrides.items():
            self._data[key] = self._validate(key, value)

    def load(self):
        """Load config from defaults, disk and environment, in that order."""
        self._data = dict(_DEFAULTS)
        if self.path and self.path.exists():
            try:
                with open(self.path, 'r') as f:
                    saved = json.load(f)
                for key, value in saved.items():
                    self._data[key] = self._validate(key, value)
            except Exception as e:
                logger.warning("Failed to load config: %s", e)

        for env_name, (key, divisor) in _ENV_OVERRIDES.items():
            raw = self._environ.get(env_name)
            if raw is None or raw == "":
                continue
            if divisor:
                try:
                    raw = float(raw) / divisor
                except ValueError:
                    logger.warning("Invalid %s %r — ignored", env_name, raw)
                    continue
            self._data[key] = self._validate(key, raw)

    def save(self):
        """Persist config to disk."""
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(self._data, f, indent=2)

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value):
        value = self._validate(key, value)
        self._data[key] = value
        self.save()

    def _validate(self, key: str, value):
        """Validate and coerce config values to safe ranges."""
        if key in ('cleanup_interval_sec', 'cleanup_initial_delay_sec', 'max_file_age_sec'):
            try:
                value = float(value)
            except (TypeError, ValueError):
                logger.warning("Invalid %s %r — using default", key, value)
                return _DEFAULTS[key]
            floor = 0 if key == 'cleanup_initial_delay_sec' else _INTERVAL_MIN
            return max(floor, value)

        if key in ('metadata_timeout_sec', 'download_timeout_sec'):
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning("Invalid %s %r — using default", key, value)
                return _DEFAULTS[key]
            return max(_TIMEOUT_MIN, min(_TIMEOUT_MAX, value))

        if key == 'evict_processing_jobs':
            if isinstance(value, str):
                return value.strip().lower() in ('1', 'true', 'yes', 'on')
            return bool(value)

        if key in ('temp_dir', 'default_quality', 'ytdlp_binary'):
            value = str(value).strip()
            if not value:
                logger.warning("Empty %s — using default", key)
                return _DEFAULTS[key]

        return value

    def as_dict(self) -> dict:
        return dict(self._data)

    @property
    def temp_dir(self) -> Path:
        return Path(self._data.get('temp_dir', str(DEFAULT_TEMP_DIR)))

    @property
    def ytdlp_binary(self) -> str:
        return self._data.get('ytdlp_binary', DEFAULT_YTDLP_BINARY)

    @property
    def default_quality(self) -> str:
        return self._data.get('default_quality', DEFAULT_AUDIO_QUALITY)

    @property
    def max_file_age_sec(self) -> float:
        return self._data.get('max_file_age_sec', MAX_FILE_AGE_SEC)

    @property
    def cleanup_interval_sec(self) -> float:
        return self._data.get('cleanup_interval_sec', CLEANUP_INTERVAL_SEC)

    @property
    def cleanup_initial_delay_sec(self) -> float:
        return self._data.get('cleanup_initial_delay_sec', CLEANUP_INITIAL_DELAY_SEC)

    @property
    def evict_processing_jobs(self) -> bool:
        return self._data.get('evict_processing_jobs', True)
