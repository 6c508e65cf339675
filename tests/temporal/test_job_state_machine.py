"""
Job State Machine Tests
=======================

1. Only PROCESSING -> COMPLETED and PROCESSING -> FAILED exist
2. Terminal jobs reject every command
3. Counters never decrease, errors only grow
4. apply() is pure
"""

import re
import pytest
from datetime import datetime, timezone

from chronologicon.contracts.errors import InvalidJobTransition
from chronologicon.contracts.jobs import (
    BatchRejected, JobCompleted, JobError, JobFailed, JobStatus,
    LineRejected, ProgressReported, TotalLinesCounted
)
from chronologicon.temporal.state_machine import JobState, generate_job_id


DONE_AT = datetime(2023, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_job() -> JobState:
    return JobState.start("/data/events.txt", job_id="ingest-job-1-deadbeef")


class TestJobId:

    def test_format(self):
        assert re.fullmatch(r"ingest-job-\d+-[0-9a-f]{8}", generate_job_id())

    def test_unique(self):
        assert len({generate_job_id() for _ in range(200)}) == 200


class TestTransitions:

    def test_new_job_is_processing(self):
        job = make_job()

        assert job.status is JobStatus.PROCESSING
        assert job.total_lines is None
        assert job.processed_lines == 0
        assert job.error_lines == 0
        assert job.errors == ()
        assert job.end_time is None

    def test_total_lines_set_once(self):
        job = make_job().apply(TotalLinesCounted(150))
        assert job.total_lines == 150

        with pytest.raises(InvalidJobTransition):
            job.apply(TotalLinesCounted(151))

    def test_line_rejected_appends_error(self):
        job = make_job().apply(LineRejected(2, "Line 2: Invalid UUID format: 'x'"))

        assert job.error_lines == 1
        assert job.errors == (JobError(2, "Line 2: Invalid UUID format: 'x'"),)

    def test_batch_rejected_counts_every_record(self):
        job = make_job().apply(BatchRejected(101, 150, 50, "dangling parent"))

        assert job.error_lines == 50
        assert len(job.errors) == 1
        assert job.errors[0].line_number == 101
        assert "Lines 101-150" in job.errors[0].message
        assert "dangling parent" in job.errors[0].message

    def test_progress_is_monotonic(self):
        job = make_job().apply(ProgressReported(100, 2))

        assert (job.processed_lines, job.error_lines) == (100, 2)
        with pytest.raises(InvalidJobTransition):
            job.apply(ProgressReported(99, 2))
        with pytest.raises(InvalidJobTransition):
            job.apply(ProgressReported(100, 1))

    def test_complete(self):
        job = make_job().apply(JobCompleted(2, 1, DONE_AT))

        assert job.status is JobStatus.COMPLETED
        assert job.end_time == DONE_AT
        assert (job.processed_lines, job.error_lines) == (2, 1)

    def test_fail_records_job_level_error(self):
        job = make_job().apply(LineRejected(1, "bad")).apply(JobFailed("Processing failed: disk gone", DONE_AT))

        assert job.status is JobStatus.FAILED
        assert job.end_time == DONE_AT
        assert job.errors[-1] == JobError(None, "Processing failed: disk gone")
        assert job.error_lines == 1

    @pytest.mark.parametrize("terminal", [
        JobCompleted(0, 0, DONE_AT),
        JobFailed("boom", DONE_AT),
    ])
    @pytest.mark.parametrize("command", [
        TotalLinesCounted(1),
        LineRejected(1, "x"),
        BatchRejected(1, 2, 2, "x"),
        ProgressReported(0, 0),
        JobCompleted(0, 0, DONE_AT),
        JobFailed("again", DONE_AT),
    ])
    def test_terminal_jobs_are_final(self, terminal, command):
        job = make_job().apply(terminal)

        with pytest.raises(InvalidJobTransition):
            job.apply(command)

    def test_unknown_command_rejected(self):
        with pytest.raises(InvalidJobTransition):
            make_job().apply("set status COMPLETED")

    def test_apply_is_pure(self):
        """The prior snapshot is untouched and replays agree."""
        job = make_job()
        commands = [TotalLinesCounted(3), LineRejected(2, "bad"), JobCompleted(2, 1, DONE_AT)]

        first = job
        second = job
        for command in commands:
            first = first.apply(command)
            second = second.apply(command)

        assert first == second
        assert job.status is JobStatus.PROCESSING
        assert job.errors == ()
