"""
Job State Machine
=================

Pure transition function for ingestion jobs.

INVARIANT: JobState.apply(command) is a PURE FUNCTION
Same state + same command -> identical new state.

This module DOES NOT store state.
Ledgers persist whatever apply() returns, one command at a time.

LEGAL TRANSITIONS:
==================
PROCESSING --(JobCompleted)--> COMPLETED
PROCESSING --(JobFailed)-----> FAILED

Every other command keeps the job in PROCESSING.
Any command against a terminal job is rejected.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Tuple
import secrets
import time

from ..contracts.base import utc_now
from ..contracts.errors import InvalidJobTransition
from ..contracts.jobs import (
    JobStatus, JobError, JobCommand,
    TotalLinesCounted, LineRejected, BatchRejected,
    ProgressReported, JobCompleted, JobFailed
)


def generate_job_id() -> str:
    """ingest-job-<epoch millis>-<8 hex chars>"""
    return f"ingest-job-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


@dataclass(frozen=True)
class JobState:
    """
    Immutable snapshot of one ingestion job.

    GUARANTEES:
    ===========
    1. processed_lines and error_lines never decrease
    2. errors only grow (append-only)
    3. total_lines is set at most once
    4. end_time is set exactly once, on the terminal transition
    """
    job_id: str
    file_path: str
    status: JobStatus = JobStatus.PROCESSING
    total_lines: Optional[int] = None
    processed_lines: int = 0
    error_lines: int = 0
    errors: Tuple[JobError, ...] = field(default_factory=tuple)
    start_time: datetime = field(default_factory=utc_now)
    end_time: Optional[datetime] = None

    @staticmethod
    def start(file_path: str, job_id: Optional[str] = None) -> JobState:
        """Create a fresh PROCESSING job."""
        return JobState(job_id=job_id or generate_job_id(), file_path=file_path)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    # =========================================================================
    # TRANSITION FUNCTION
    # =========================================================================

    def apply(self, command: JobCommand) -> JobState:
        """
        Apply one command and return the new state.

        Raises InvalidJobTransition for any command against a terminal job,
        a second total-lines count, or a counter regression.
        """
        if self.is_terminal:
            raise InvalidJobTransition(
                f"Job {self.job_id} is {self.status.value}; "
                f"cannot apply {type(command).__name__}"
            )

        if isinstance(command, TotalLinesCounted):
            if self.total_lines is not None:
                raise InvalidJobTransition(f"Job {self.job_id} already counted its lines")
            return replace(self, total_lines=command.total_lines)

        if isinstance(command, LineRejected):
            return replace(
                self,
                error_lines=self.error_lines + 1,
                errors=self.errors + (JobError(command.line_number, command.message),)
            )

        if isinstance(command, BatchRejected):
            message = (
                f"Lines {command.first_line}-{command.last_line}: batch of "
                f"{command.size} events rejected: {command.message}"
            )
            return replace(
                self,
                error_lines=self.error_lines + command.size,
                errors=self.errors + (JobError(command.first_line, message),)
            )

        if isinstance(command, ProgressReported):
            return self._with_counters(command.processed_lines, command.error_lines)

        if isinstance(command, JobCompleted):
            counted = self._with_counters(command.processed_lines, command.error_lines)
            return replace(counted, status=JobStatus.COMPLETED, end_time=command.at)

        if isinstance(command, JobFailed):
            return replace(
                self,
                status=JobStatus.FAILED,
                end_time=command.at,
                errors=self.errors + (JobError(None, command.message),)
            )

        raise InvalidJobTransition(f"Unknown job command: {command!r}")

    def _with_counters(self, processed_lines: int, error_lines: int) -> JobState:
        if processed_lines < self.processed_lines or error_lines < self.error_lines:
            raise InvalidJobTransition(
                f"Job {self.job_id} counters cannot decrease "
                f"({self.processed_lines}/{self.error_lines} -> "
                f"{processed_lines}/{error_lines})"
            )
        return replace(self, processed_lines=processed_lines, error_lines=error_lines)
