"""
Job Ledger Tests
================

1. get() on an unknown id raises JobNotFoundError
2. apply() persists exactly what the state machine returns
3. Concurrent commands against one job never lose updates
"""

import pytest
import threading
from datetime import datetime, timezone

from chronologicon.contracts.errors import InvalidJobTransition, JobNotFoundError
from chronologicon.contracts.jobs import (
    JobCompleted, JobError, JobFailed, JobStatus, LineRejected, TotalLinesCounted
)
from chronologicon.storage import InMemoryJobLedger, SqliteJobLedger
from chronologicon.temporal.state_machine import JobState


DONE_AT = datetime(2023, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sqlite"])
def ledger(request, tmp_path):
    if request.param == "memory":
        return InMemoryJobLedger()
    return SqliteJobLedger(tmp_path / "jobs.db")


class TestJobLedger:

    def test_create_and_get(self, ledger):
        job = ledger.create(JobState.start("/data/a.txt"))
        fetched = ledger.get(job.job_id)

        assert fetched.job_id == job.job_id
        assert fetched.status is JobStatus.PROCESSING
        assert fetched.file_path == "/data/a.txt"
        assert fetched.start_time == job.start_time

    def test_unknown_job(self, ledger):
        with pytest.raises(JobNotFoundError):
            ledger.get("ingest-job-0-00000000")
        with pytest.raises(JobNotFoundError):
            ledger.apply("ingest-job-0-00000000", TotalLinesCounted(1))

    def test_apply_persists_transition(self, ledger):
        job = ledger.create(JobState.start("/data/a.txt"))

        ledger.apply(job.job_id, TotalLinesCounted(3))
        ledger.apply(job.job_id, LineRejected(2, "Line 2: bad"))
        final = ledger.apply(job.job_id, JobCompleted(2, 1, DONE_AT))

        stored = ledger.get(job.job_id)
        assert stored == final
        assert stored.status is JobStatus.COMPLETED
        assert stored.total_lines == 3
        assert stored.errors == (JobError(2, "Line 2: bad"),)
        assert stored.end_time == DONE_AT

    def test_rejected_command_leaves_job_unchanged(self, ledger):
        job = ledger.create(JobState.start("/data/a.txt"))
        ledger.apply(job.job_id, JobFailed("Processing failed: x", DONE_AT))

        with pytest.raises(InvalidJobTransition):
            ledger.apply(job.job_id, LineRejected(1, "late"))

        stored = ledger.get(job.job_id)
        assert stored.status is JobStatus.FAILED
        assert stored.errors == (JobError(None, "Processing failed: x"),)

    def test_list_newest_first_and_filtered(self, ledger):
        first = ledger.create(JobState.start("/data/1.txt", job_id="ingest-job-1-aaaaaaaa"))
        second = ledger.create(JobState.start("/data/2.txt", job_id="ingest-job-2-bbbbbbbb"))
        ledger.apply(first.job_id, JobCompleted(0, 0, DONE_AT))

        assert [j.job_id for j in ledger.list()] == [second.job_id, first.job_id]
        assert [j.job_id for j in ledger.list(status=JobStatus.COMPLETED)] == [first.job_id]
        assert len(ledger.list(limit=1)) == 1

    def test_concurrent_errors_are_not_lost(self, ledger):
        """Racing increments from many threads all land."""
        job = ledger.create(JobState.start("/data/a.txt"))

        def reject(offset):
            for i in range(10):
                ledger.apply(job.job_id, LineRejected(offset * 10 + i, "bad"))

        threads = [threading.Thread(target=reject, args=(n,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stored = ledger.get(job.job_id)
        assert stored.error_lines == 50
        assert len(stored.errors) == 50
