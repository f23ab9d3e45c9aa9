"""
Cleanup: evict expired jobs together with their working directories.
"""

import shutil
import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from tubeaudio.core.constants import (
    JobStatus, CLEANUP_INTERVAL_SEC, CLEANUP_INITIAL_DELAY_SEC,
)
from tubeaudio.core.registry import JobRegistry, FileRegistry

logger = logging.getLogger(__name__)


def remove_job_workspace(job_workspace: Path) -> bool:
    """
    Recursively delete a job directory. A directory that is already gone
    is not an error. Returns True if nothing is left on disk.
    """
    try:
        shutil.rmtree(job_workspace)
        logger.debug("Deleted: %s", job_workspace)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to delete %s: %s", job_workspace, e)
        return False
    return True


def sweep_expired(jobs: JobRegistry, files: FileRegistry, temp_dir: Path,
                  now: float, max_age: float,
                  evict_processing: bool = True) -> list[str]:
    """
    One eviction pass. A job whose age is strictly greater than max_age
    loses its directory, its file mapping and its record.
    Returns the evicted job ids.

    The listing is only a hint: workers keep publishing while the sweep
    runs, so expiry is re-checked against the current record at removal
    time and the file mapping is taken from the record actually removed.
    """
    def evictable(job) -> bool:
        if now - job.created_at <= max_age:
            return False
        return evict_processing or job.status != JobStatus.PROCESSING

    evicted = []
    for candidate in jobs.all():
        job = jobs.pop_if(candidate.id, evictable)
        if job is None:
            if (now - candidate.created_at > max_age
                    and candidate.status == JobStatus.PROCESSING and not evict_processing):
                logger.info("Job %s expired but still processing; kept", candidate.id)
            continue

        if job.status == JobStatus.PROCESSING:
            logger.warning("Evicting job %s while still processing (stage %s)",
                           job.id, job.stage)

        if job.file_id:
            files.remove(job.file_id)
        remove_job_workspace(temp_dir / job.id)
        evicted.append(job.id)

    logger.info("Cleanup completed. Active jobs: %d, Active files: %d",
                len(jobs), len(files))
    return evicted


class CleanupSweeper:
    """
    Background thread that runs a sweep after an initial delay and then
    on a fixed interval until stopped.
    """

    def __init__(self, sweep: Callable[[], list[str]],
                 interval: float = CLEANUP_INTERVAL_SEC,
                 initial_delay: float = CLEANUP_INITIAL_DELAY_SEC):
        self._sweep = sweep
        self.interval = interval
        self.initial_delay = initial_delay
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start the sweeper thread."""
        if self.is_running():
            return
        logger.info("Starting cleanup service with interval: %ss", self.interval)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="cleanup-sweeper",
                                        daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> list[str]:
        logger.info("Running cleanup...")
        try:
            return self._sweep()
        except Exception as e:
            logger.error("Cleanup sweep failed: %s", e, exc_info=True)
            return []

    def _loop(self):
        if self._stop_event.wait(self.initial_delay):
            return
        while True:
            self.run_once()
            if self._stop_event.wait(self.interval):
                return
