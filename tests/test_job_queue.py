#!/usr/bin/env python3
"""
Tests for the conversion manager and the cleanup sweeper.
yt-dlp is replaced by an in-process fake adapter; time by a settable clock.
"""

import sys
import tempfile
import threading
from unittest import mock
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import unittest

from tubeaudio.core.constants import JobStatus, JobStage, ErrorCode
from tubeaudio.core.config import AppConfig
from tubeaudio.core.error_codes import ToolExecutionError
from tubeaudio.core.yt_metadata import parse_metadata_line
from tubeaudio.core.download_audio import find_audio_output
from tubeaudio.core.job_queue import ConversionManager
from tubeaudio.core.cleanup import CleanupSweeper, remove_job_workspace

WAIT = 10


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeAdapter:
    """Stands in for MediaToolAdapter; writes MP3 stubs into the job directory."""

    def __init__(self, outputs=("track.mp3",), metadata_error=None, download_error=None,
                 gate: threading.Event | None = None):
        self.outputs = outputs
        self.metadata_error = metadata_error
        self.download_error = download_error
        self.gate = gate
        self.entered_download = threading.Event()
        self.calls = []

    def fetch_metadata(self, url):
        self.calls.append(("metadata", url))
        if self.metadata_error:
            raise self.metadata_error
        return parse_metadata_line(f"abc12345678|Title for {url}|thumb|125|Chan|desc|10|20230101")

    def download_audio(self, url, output_dir, quality):
        self.calls.append(("download", url, Path(output_dir), quality))
        self.entered_download.set()
        if self.gate is not None:
            self.gate.wait(WAIT)
        if self.download_error:
            raise self.download_error
        for name in self.outputs:
            (Path(output_dir) / name).write_bytes(b"ID3")
        return find_audio_output(Path(output_dir))

    def probe_availability(self):
        return True


class ManagerTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.temp_dir = Path(self._tmp.name)
        self.clock = FakeClock()

    def tearDown(self):
        self._tmp.cleanup()

    def make_manager(self, adapter=None, **config) -> ConversionManager:
        config.setdefault('temp_dir', str(self.temp_dir))
        config.setdefault('max_file_age_sec', 3600)
        manager = ConversionManager(AppConfig(environ={}, **config),
                                    adapter=adapter or FakeAdapter(), clock=self.clock)
        self.updates = []
        manager.on_job_updated = self.updates.append
        return manager


class TestConversion(ManagerTestCase):

    def test_unknown_ids(self):
        manager = self.make_manager()
        self.assertIsNone(manager.query_status("never-submitted"))
        self.assertIsNone(manager.resolve_file("never-issued"))

    def test_submit_returns_processing_snapshot(self):
        gate = threading.Event()
        manager = self.make_manager(FakeAdapter(gate=gate))
        job = manager.submit("job-1", "https://youtu.be/abc12345678", "192")
        self.assertEqual(job.status, JobStatus.PROCESSING)
        self.assertEqual(job.progress, 0)
        self.assertEqual(job.created_at, 1000.0)
        self.assertEqual(job.quality, "192")
        gate.set()
        manager.wait("job-1", WAIT)

    def test_success(self):
        adapter = FakeAdapter()
        manager = self.make_manager(adapter)
        manager.submit("job-1", "https://youtu.be/abc12345678", "192")
        job = manager.wait("job-1", WAIT)

        self.assertEqual(job.status, JobStatus.COMPLETED)
        self.assertEqual(job.stage, JobStage.COMPLETED)
        self.assertEqual(job.progress, 100)
        self.assertIsNotNone(job.file_id)
        self.assertIsNone(job.error)
        self.assertEqual(job.metadata.duration, 125)

        path = manager.resolve_file(job.file_id)
        self.assertTrue(path.is_absolute())
        self.assertTrue(path.exists())
        self.assertEqual(path.parent, (self.temp_dir / "job-1").resolve())
        self.assertEqual(adapter.calls[1], ("download", "https://youtu.be/abc12345678",
                                            self.temp_dir / "job-1", "192"))

    def test_progress_sequence(self):
        manager = self.make_manager()
        manager.submit("job-1", "https://youtu.be/abc12345678")
        manager.wait("job-1", WAIT)

        progress = [job.progress for job in self.updates]
        self.assertEqual(progress, [0, 20, 40, 60, 100])
        self.assertEqual(progress, sorted(progress))
        for job in self.updates[:-1]:
            self.assertEqual(job.status, JobStatus.PROCESSING)
            self.assertIsNone(job.file_id)
            self.assertIsNone(job.error)
        self.assertIsNone(self.updates[1].metadata)
        self.assertIsNotNone(self.updates[2].metadata)

    def test_default_quality_from_config(self):
        adapter = FakeAdapter()
        manager = self.make_manager(adapter, default_quality="256")
        manager.submit("job-1", "https://youtu.be/abc12345678")
        manager.wait("job-1", WAIT)
        self.assertEqual(adapter.calls[1][3], "256")

    def test_metadata_failure(self):
        adapter = FakeAdapter(metadata_error=ToolExecutionError(
            "yt-dlp failed: ERROR: Video unavailable", stderr="ERROR: Video unavailable",
            returncode=1))
        manager = self.make_manager(adapter)
        manager.submit("job-1", "https://youtu.be/abc12345678")
        job = manager.wait("job-1", WAIT)

        self.assertEqual(job.status, JobStatus.FAILED)
        self.assertEqual(job.error, "yt-dlp failed: ERROR: Video unavailable")
        self.assertEqual(job.error_code, ErrorCode.TOOL_EXECUTION)
        self.assertEqual(job.progress, 0)
        self.assertIsNone(job.file_id)
        self.assertFalse((self.temp_dir / "job-1").exists())
        self.assertEqual(len(adapter.calls), 1)

    def test_no_output_fails_job(self):
        manager = self.make_manager(FakeAdapter(outputs=()))
        manager.submit("job-1", "https://youtu.be/abc12345678")
        job = manager.wait("job-1", WAIT)

        self.assertEqual(job.status, JobStatus.FAILED)
        self.assertEqual(job.error_code, ErrorCode.NO_OUTPUT)
        self.assertIn("No MP3 file found", job.error)
        self.assertEqual(job.progress, 60)
        self.assertIsNone(job.file_id)
        self.assertEqual(manager.stats()["files"], 0)
        # job directory stays for the sweeper
        self.assertTrue((self.temp_dir / "job-1").is_dir())

    def test_unexpected_error(self):
        manager = self.make_manager(FakeAdapter(download_error=RuntimeError("disk on fire")))
        manager.submit("job-1", "https://youtu.be/abc12345678")
        job = manager.wait("job-1", WAIT)

        self.assertEqual(job.status, JobStatus.FAILED)
        self.assertEqual(job.error, "disk on fire")
        self.assertEqual(job.error_code, ErrorCode.UNEXPECTED)

    def test_two_jobs_are_isolated(self):
        manager = self.make_manager()
        manager.submit("job-a", "https://youtu.be/aaaaaaaaaaa")
        manager.submit("job-b", "https://youtu.be/bbbbbbbbbbb")
        a = manager.wait("job-a", WAIT)
        b = manager.wait("job-b", WAIT)

        self.assertEqual((a.status, b.status), (JobStatus.COMPLETED, JobStatus.COMPLETED))
        self.assertNotEqual(a.file_id, b.file_id)
        path_a = manager.resolve_file(a.file_id)
        path_b = manager.resolve_file(b.file_id)
        self.assertNotEqual(path_a, path_b)
        self.assertNotEqual(path_a.parent, path_b.parent)
        self.assertEqual(manager.stats(), {"jobs": 2, "files": 2})
        self.assertEqual([j.id for j in manager.list_jobs()], ["job-a", "job-b"])

    def test_resubmit_replaces_record(self):
        gate = threading.Event()
        adapter = FakeAdapter(gate=gate)
        manager = self.make_manager(adapter)
        manager.submit("job-1", "https://youtu.be/first111111")
        self.assertTrue(adapter.entered_download.wait(WAIT))
        first_worker = manager._workers["job-1"]

        manager.submit("job-1", "https://youtu.be/second22222")
        gate.set()
        first_worker.join(WAIT)
        job = manager.wait("job-1", WAIT)

        self.assertEqual(job.source_url, "https://youtu.be/second22222")
        self.assertEqual(job.status, JobStatus.COMPLETED)
        # only the second run registered a file
        self.assertEqual(manager.stats(), {"jobs": 1, "files": 1})

    def test_fetch_metadata_passthrough(self):
        manager = self.make_manager()
        meta = manager.fetch_metadata("https://youtu.be/abc12345678")
        self.assertEqual(meta.id, "abc12345678")
        self.assertTrue(manager.probe_availability())


class TestCleanup(ManagerTestCase):

    def _completed_job(self, manager, job_id="job-1"):
        manager.submit(job_id, "https://youtu.be/abc12345678")
        job = manager.wait(job_id, WAIT)
        self.assertEqual(job.status, JobStatus.COMPLETED)
        return job

    def test_not_yet_expired(self):
        manager = self.make_manager()
        job = self._completed_job(manager)

        self.assertEqual(manager.cleanup(now=1000.0 + 3599.999), [])
        self.assertIsNotNone(manager.query_status("job-1"))
        self.assertIsNotNone(manager.resolve_file(job.file_id))
        self.assertTrue((self.temp_dir / "job-1").is_dir())

    def test_exactly_max_age_is_kept(self):
        manager = self.make_manager()
        self._completed_job(manager)
        self.assertEqual(manager.cleanup(now=1000.0 + 3600), [])

    def test_expired(self):
        manager = self.make_manager()
        job = self._completed_job(manager)

        self.assertEqual(manager.cleanup(now=1000.0 + 3600.001), ["job-1"])
        self.assertIsNone(manager.query_status("job-1"))
        self.assertIsNone(manager.resolve_file(job.file_id))
        self.assertFalse((self.temp_dir / "job-1").exists())
        self.assertEqual(manager.stats(), {"jobs": 0, "files": 0})

    def test_uses_clock(self):
        manager = self.make_manager()
        self._completed_job(manager)
        self.clock.now += 3601
        self.assertEqual(manager.cleanup(), ["job-1"])

    def test_only_old_jobs_evicted(self):
        manager = self.make_manager()
        self._completed_job(manager, "old")
        self.clock.now += 1800
        young = self._completed_job(manager, "young")

        self.assertEqual(manager.cleanup(now=1000.0 + 3601), ["old"])
        self.assertIsNotNone(manager.resolve_file(young.file_id))
        self.assertTrue((self.temp_dir / "young").is_dir())

    def test_failed_job_evicted(self):
        manager = self.make_manager(FakeAdapter(outputs=()))
        manager.submit("job-1", "https://youtu.be/abc12345678")
        manager.wait("job-1", WAIT)
        self.assertEqual(manager.cleanup(now=1000.0 + 3601), ["job-1"])
        self.assertFalse((self.temp_dir / "job-1").exists())

    def test_missing_directory_tolerated(self):
        manager = self.make_manager(FakeAdapter(metadata_error=ToolExecutionError("boom")))
        manager.submit("job-1", "https://youtu.be/abc12345678")
        manager.wait("job-1", WAIT)
        self.assertEqual(manager.cleanup(now=1000.0 + 3601), ["job-1"])

    def test_processing_job_evicted_by_default(self):
        gate = threading.Event()
        adapter = FakeAdapter(gate=gate)
        manager = self.make_manager(adapter)
        manager.submit("job-1", "https://youtu.be/abc12345678")
        self.assertTrue(adapter.entered_download.wait(WAIT))

        self.assertEqual(manager.cleanup(now=1000.0 + 3601), ["job-1"])
        self.assertFalse((self.temp_dir / "job-1").exists())

        gate.set()
        manager.wait("job-1", WAIT)
        # the late worker must not resurrect the job or leave a mapping
        self.assertIsNone(manager.query_status("job-1"))
        self.assertEqual(manager.stats(), {"jobs": 0, "files": 0})

    def test_processing_job_kept_when_configured(self):
        gate = threading.Event()
        adapter = FakeAdapter(gate=gate)
        manager = self.make_manager(adapter, evict_processing_jobs=False)
        manager.submit("job-1", "https://youtu.be/abc12345678")
        self.assertTrue(adapter.entered_download.wait(WAIT))

        self.assertEqual(manager.cleanup(now=1000.0 + 3601), [])
        gate.set()
        job = manager.wait("job-1", WAIT)
        self.assertEqual(job.status, JobStatus.COMPLETED)
        # once terminal it goes on the next pass
        self.assertEqual(manager.cleanup(now=1000.0 + 3602), ["job-1"])

    def test_job_completed_after_listing_loses_its_file(self):
        gate = threading.Event()
        adapter = FakeAdapter(gate=gate)
        manager = self.make_manager(adapter)
        manager.submit("job-1", "https://youtu.be/abc12345678")
        self.assertTrue(adapter.entered_download.wait(WAIT))
        listing = manager.jobs.all()
        self.assertEqual(listing[0].stage, JobStage.WORKDIR_READY)

        gate.set()
        job = manager.wait("job-1", WAIT)
        self.assertEqual(job.status, JobStatus.COMPLETED)

        # the sweep still sees the pre-completion listing
        with mock.patch.object(manager.jobs, "all", return_value=listing):
            self.assertEqual(manager.cleanup(now=1000.0 + 3601), ["job-1"])
        self.assertIsNone(manager.resolve_file(job.file_id))
        self.assertEqual(manager.stats(), {"jobs": 0, "files": 0})
        self.assertFalse((self.temp_dir / "job-1").exists())

    def test_job_resubmitted_after_listing_is_kept(self):
        manager = self.make_manager()
        self._completed_job(manager)
        listing = manager.jobs.all()

        self.clock.now += 3601
        manager.submit("job-1", "https://youtu.be/second22222")
        fresh = manager.wait("job-1", WAIT)
        self.assertEqual(fresh.status, JobStatus.COMPLETED)

        with mock.patch.object(manager.jobs, "all", return_value=listing):
            self.assertEqual(manager.cleanup(), [])
        self.assertIs(manager.query_status("job-1"), fresh)
        self.assertTrue(manager.resolve_file(fresh.file_id).exists())
        self.assertTrue((self.temp_dir / "job-1").is_dir())

    def test_remove_job_workspace(self):
        workspace = self.temp_dir / "job-x"
        (workspace / "nested").mkdir(parents=True)
        (workspace / "nested" / "a.mp3").write_bytes(b"ID3")
        self.assertTrue(remove_job_workspace(workspace))
        self.assertFalse(workspace.exists())
        self.assertTrue(remove_job_workspace(workspace))


class TestCleanupSweeper(unittest.TestCase):

    def test_runs_repeatedly_until_stopped(self):
        calls = []
        done = threading.Event()

        def sweep():
            calls.append(1)
            if len(calls) >= 3:
                done.set()
            return []

        sweeper = CleanupSweeper(sweep, interval=0.01, initial_delay=0.01)
        sweeper.start()
        self.assertTrue(sweeper.is_running())
        self.assertTrue(done.wait(WAIT))
        sweeper.stop(WAIT)
        self.assertFalse(sweeper.is_running())
        self.assertGreaterEqual(len(calls), 3)

    def test_stop_during_initial_delay(self):
        calls = []
        sweeper = CleanupSweeper(lambda: calls.append(1) or [], interval=60, initial_delay=60)
        sweeper.start()
        sweeper.stop(WAIT)
        self.assertEqual(calls, [])

    def test_run_once_survives_errors(self):
        def sweep():
            raise OSError("permission denied")

        sweeper = CleanupSweeper(sweep, interval=60, initial_delay=60)
        self.assertEqual(sweeper.run_once(), [])

    def test_manager_wires_config(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = ConversionManager(
                AppConfig(environ={}, temp_dir=tmpdir, cleanup_interval_sec=5,
                          cleanup_initial_delay_sec=0),
                adapter=FakeAdapter())
            self.assertEqual(manager.sweeper.interval, 5)
            self.assertEqual(manager.sweeper.initial_delay, 0)
            manager.start_cleanup()
            manager.stop_cleanup(WAIT)
            self.assertFalse(manager.sweeper.is_running())


if __name__ == "__main__":
    unittest.main()
