"""
Job state machine.

    CREATED (0) → METADATA_FETCHED (20) → METADATA_RECORDED (40)
               → WORKDIR_READY (60) → COMPLETED (100)
    any non-terminal state → FAILED (progress kept)

Every transition is a pure function from the current snapshot to the next
one. Publishing the result to the registry is the caller's business.
"""

from dataclasses import replace

from tubeaudio.core.constants import (
    JobStatus, JobStage,
    PROGRESS_CREATED, PROGRESS_METADATA_FETCHED, PROGRESS_METADATA_RECORDED,
    PROGRESS_WORKDIR_READY, PROGRESS_COMPLETED,
)
from tubeaudio.core.error_codes import InvalidTransitionError
from tubeaudio.core.models import Job, VideoMetadata


def new_job(job_id: str, source_url: str, quality: str, now: float) -> Job:
    return Job(
        id=job_id,
        source_url=source_url,
        quality=quality,
        created_at=now,
        updated_at=now,
        status=JobStatus.PROCESSING,
        stage=JobStage.CREATED,
        progress=PROGRESS_CREATED,
    )


def _advance(job: Job, stage: str, progress: int, now: float, **changes) -> Job:
    if job.is_terminal:
        raise InvalidTransitionError(
            f"Job {job.id} is {job.status}; cannot move to {stage}")
    if progress < job.progress:
        raise InvalidTransitionError(
            f"Job {job.id} progress cannot go from {job.progress} to {progress}")
    return replace(job, stage=stage, progress=progress, updated_at=now, **changes)


def metadata_fetched(job: Job, now: float) -> Job:
    return _advance(job, JobStage.METADATA_FETCHED, PROGRESS_METADATA_FETCHED, now)


def metadata_recorded(job: Job, metadata: VideoMetadata, now: float) -> Job:
    return _advance(job, JobStage.METADATA_RECORDED, PROGRESS_METADATA_RECORDED,
                    now, metadata=metadata)


def workdir_ready(job: Job, now: float) -> Job:
    return _advance(job, JobStage.WORKDIR_READY, PROGRESS_WORKDIR_READY, now)


def completed(job: Job, file_id: str, now: float) -> Job:
    if not file_id:
        raise InvalidTransitionError(f"Job {job.id} cannot complete without a file id")
    return _advance(job, JobStage.COMPLETED, PROGRESS_COMPLETED, now,
                    status=JobStatus.COMPLETED, file_id=file_id)


def failed(job: Job, error: str, error_code: str, now: float) -> Job:
    """Terminal failure; the progress already reached is left as is."""
    return _advance(job, JobStage.FAILED, job.progress, now,
                    status=JobStatus.FAILED, error=error or "Unknown error occurred",
                    error_code=error_code)
