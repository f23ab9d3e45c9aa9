"""
Conversion Manager.
Runs each submitted video through metadata → download → transcode on its
own worker thread and keeps the job and file registries current.
"""

import time
import uuid
import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from tubeaudio.core.constants import ErrorCode
from tubeaudio.core.config import AppConfig
from tubeaudio.core.error_codes import JobError, error_message
from tubeaudio.core.models import Job, VideoMetadata
from tubeaudio.core.registry import JobRegistry, FileRegistry
from tubeaudio.core.media_tool import MediaToolAdapter
from tubeaudio.core.cleanup import CleanupSweeper, sweep_expired
from tubeaudio.core import job_state

logger = logging.getLogger(__name__)


class _JobDiscarded(Exception):
    """The job's record was evicted or replaced while its worker ran."""


class ConversionManager:
    """
    Owns the job and file registries, starts one worker per submission and
    a cleanup sweeper. Emits on_job_updated with every published snapshot.
    """

    def __init__(self, config: AppConfig | None = None, adapter=None,
                 clock: Callable[[], float] = time.time):
        self.config = config or AppConfig()
        self.adapter = adapter or MediaToolAdapter.from_config(self.config)
        self.clock = clock
        self.jobs = JobRegistry()
        self.files = FileRegistry()
        self._workers: dict[str, threading.Thread] = {}
        self._workers_lock = threading.Lock()
        self.sweeper = CleanupSweeper(
            self.cleanup,
            interval=self.config.cleanup_interval_sec,
            initial_delay=self.config.cleanup_initial_delay_sec,
        )

        # Callbacks
        self.on_job_updated: Optional[Callable[[Job], None]] = None

    # ── Config helpers ────────────────────────────────────────────────

    @property
    def temp_dir(self) -> Path:
        return self.config.temp_dir

    def job_workspace(self, job_id: str) -> Path:
        return self.temp_dir / job_id

    # ── Public operations ─────────────────────────────────────────────

    def submit(self, job_id: str, url: str, quality: str | None = None) -> Job:
        """
        Register a new job and start converting it in the background.
        Reusing a job id replaces the earlier record; the earlier worker
        keeps running but its updates are dropped.
        """
        quality = str(quality or self.config.default_quality)
        job = job_state.new_job(job_id, url, quality, self.clock())
        self.jobs.put(job)
        self._notify_job_updated(job)

        worker = threading.Thread(target=self._process_job, args=(job,),
                                  name=f"job-{job_id}", daemon=True)
        with self._workers_lock:
            self._workers[job_id] = worker
        worker.start()
        logger.info("Submitted job %s for %s (quality %s)", job_id, url, quality)
        return job

    def query_status(self, job_id: str) -> Job | None:
        return self.jobs.get(job_id)

    def resolve_file(self, file_id: str) -> Path | None:
        return self.files.get(file_id)

    def fetch_metadata(self, url: str) -> VideoMetadata:
        """Metadata lookup without starting a conversion."""
        return self.adapter.fetch_metadata(url)

    def probe_availability(self) -> bool:
        return self.adapter.probe_availability()

    def list_jobs(self) -> list[Job]:
        return sorted(self.jobs.all(), key=lambda j: j.created_at)

    def stats(self) -> dict:
        return {"jobs": len(self.jobs), "files": len(self.files)}

    def wait(self, job_id: str, timeout: float | None = None) -> Job | None:
        """Block until the job's worker finishes (or timeout); return its snapshot."""
        with self._workers_lock:
            worker = self._workers.get(job_id)
        if worker is not None:
            worker.join(timeout)
        return self.query_status(job_id)

    # ── Cleanup ───────────────────────────────────────────────────────

    def cleanup(self, now: float | None = None) -> list[str]:
        """Evict every job older than max_file_age_sec. Returns evicted ids."""
        return sweep_expired(
            self.jobs, self.files, self.temp_dir,
            now=self.clock() if now is None else now,
            max_age=self.config.max_file_age_sec,
            evict_processing=self.config.evict_processing_jobs,
        )

    def start_cleanup(self):
        self.sweeper.start()

    def stop_cleanup(self, timeout: float | None = None):
        self.sweeper.stop(timeout)

    # ── Job processing pipeline ───────────────────────────────────────

    def _notify_job_updated(self, job: Job):
        if self.on_job_updated:
            try:
                self.on_job_updated(job)
            except Exception as e:
                logger.warning("on_job_updated callback failed: %s", e)

    def _publish(self, current: Job, new: Job) -> Job:
        if not self.jobs.replace(current, new):
            raise _JobDiscarded(new.id)
        logger.info("Job %s: %s (%d%%)", new.id, new.stage, new.progress)
        self._notify_job_updated(new)
        return new

    def _process_job(self, job: Job):
        """Process a single job through the full pipeline."""
        current = job
        try:
            # ── Stage 1: Fetch metadata ──
            metadata = self.adapter.fetch_metadata(job.source_url)
            current = self._publish(current, job_state.metadata_fetched(current, self.clock()))
            current = self._publish(current, job_state.metadata_recorded(
                current, metadata, self.clock()))

            # ── Stage 2: Job directory ──
            workspace = self.job_workspace(job.id)
            workspace.mkdir(parents=True, exist_ok=True)
            current = self._publish(current, job_state.workdir_ready(current, self.clock()))

            # ── Stage 3: Download + transcode ──
            audio_path = Path(self.adapter.download_audio(job.source_url, workspace, job.quality))

            file_id = str(uuid.uuid4())
            self.files.add(file_id, audio_path.resolve())
            try:
                current = self._publish(current, job_state.completed(
                    current, file_id, self.clock()))
            except _JobDiscarded:
                self.files.remove(file_id)
                raise

        except _JobDiscarded:
            logger.info("Job %s was evicted or replaced while running; result dropped", job.id)
        except JobError as e:
            logger.error("Conversion failed for job %s: %s", job.id, e)
            self._fail(current, error_message(e), e.code)
        except Exception as e:
            logger.error("Unexpected error processing job %s: %s", job.id, e, exc_info=True)
            self._fail(current, error_message(e), ErrorCode.UNEXPECTED)
        finally:
            with self._workers_lock:
                if self._workers.get(job.id) is threading.current_thread():
                    del self._workers[job.id]

    def _fail(self, current: Job, message: str, code: str):
        try:
            self._publish(current, job_state.failed(current, message, code, self.clock()))
        except _JobDiscarded:
            logger.info("Job %s failed after it was evicted or replaced", current.id)
