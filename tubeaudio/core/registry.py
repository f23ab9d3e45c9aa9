"""
In-memory job and file registries for tubeaudio.
Thread-safe via an explicit lock per registry; nothing survives a restart.
"""

import threading
import logging
from pathlib import Path
from typing import Callable, Optional

from tubeaudio.core.models import Job

logger = logging.getLogger(__name__)


class JobRegistry:
    """job id → latest Job snapshot."""

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: dict[str, Job] = {}

    def put(self, job: Job):
        """Insert or overwrite unconditionally (used at submission)."""
        with self._lock:
            if job.id in self._jobs:
                logger.warning("Job %s resubmitted; previous record replaced", job.id)
            self._jobs[job.id] = job

    def replace(self, expected: Job, new: Job) -> bool:
        """
        Swap expected → new only if expected is still the stored snapshot.
        Returns False when the job was evicted or overwritten meanwhile.
        """
        with self._lock:
            if self._jobs.get(expected.id) is not expected:
                return False
            self._jobs[new.id] = new
            return True

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def remove(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.pop(job_id, None)

    def pop_if(self, job_id: str, predicate: Callable[[Job], bool]) -> Optional[Job]:
        """
        Remove and return the current record for job_id if predicate holds
        for it. The check and the removal happen under one lock acquisition.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not predicate(job):
                return None
            return self._jobs.pop(job_id)

    def all(self) -> list[Job]:
        with self._lock:
            return list(self._jobs.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


class FileRegistry:
    """file id → absolute path of a finished artifact."""

    def __init__(self):
        self._lock = threading.Lock()
        self._files: dict[str, Path] = {}

    def add(self, file_id: str, path: Path):
        with self._lock:
            self._files[file_id] = path

    def get(self, file_id: str) -> Optional[Path]:
        with self._lock:
            return self._files.get(file_id)

    def remove(self, file_id: str) -> Optional[Path]:
        with self._lock:
            return self._files.pop(file_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)
