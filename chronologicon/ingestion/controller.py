"""
Ingestion Controller

Orchestrates one file-import job from start to terminal status.

DESIGN:
=======
1. start_ingestion() validates the file and creates the job synchronously
2. The import itself runs on a worker pool as an IngestionTask
3. Bad lines are recorded and skipped, never fatal
4. Batches are committed atomically; a rejected batch becomes errors
5. Anything else that goes wrong marks the job FAILED

ERROR CHANNELS:
===============
- Synchronous: IngestionStartError from start_ingestion()
- Asynchronous: the job ledger (FAILED + error entry) AND the task's
  own error slot, so a background failure is never silently dropped
"""

from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional
import logging
import os

from ..contracts.base import utc_now
from ..contracts.errors import ConstraintViolation, IngestionStartError
from ..contracts.events import EventDraft
from ..contracts.jobs import (
    BatchRejected, JobCompleted, JobFailed, JobStatus,
    LineRejected, ProgressReported, TotalLinesCounted
)
from ..storage import EventStore, JobLedger
from ..temporal.state_machine import JobState
from .parser import parse_line

logger = logging.getLogger(__name__)


@dataclass
class IngestionConfig:
    """Configuration for the ingestion pipeline."""
    batch_size: int = 100
    progress_interval: int = 100  # Lines between counter flushes
    max_workers: int = 4
    encoding: str = "utf-8"

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.progress_interval < 1:
            raise ValueError("progress_interval must be >= 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")


# =============================================================================
# TASK ABSTRACTION
# =============================================================================

@dataclass(frozen=True)
class JobOutcome:
    """What a finished background task hands back."""
    state: JobState
    error: Optional[BaseException] = None


class IngestionTask:
    """
    Handle on one background ingestion job.

    The task has its own error channel: error is the exception that ended
    the job (recorded as FAILED on the ledger), or the exception that
    escaped the worker entirely.
    """

    def __init__(self, job_id: str, future: Future):
        self._job_id = job_id
        self._future = future

    @property
    def job_id(self) -> str:
        return self._job_id

    def join(self, timeout: Optional[float] = None) -> JobState:
        """
        Wait for the task and return the terminal job snapshot.

        Re-raises an exception that escaped the worker. This is a caller-side
        wait only; the job itself is never cancelled.
        """
        return self._future.result(timeout=timeout).state

    @property
    def error(self) -> Optional[BaseException]:
        if not self._future.done():
            return None
        escaped = self._future.exception()
        if escaped is not None:
            return escaped
        return self._future.result().error


@dataclass(frozen=True)
class IngestionTicket:
    """Returned to the caller before processing completes."""
    job_id: str
    task: IngestionTask = field(compare=False)


@dataclass
class _Counters:
    processed: int = 0
    errors: int = 0


# =============================================================================
# CONTROLLER
# =============================================================================

class IngestionController:
    """
    Drives ingestion jobs against an injected event store and job ledger.

    GUARANTEES:
    ===========
    1. Lines of one job are parsed and committed strictly in order
    2. Published counters never decrease
    3. processed_lines counts only committed events
    4. Committed batches are never rolled back by a later failure
    """

    def __init__(
        self,
        event_store: EventStore,
        job_ledger: JobLedger,
        config: Optional[IngestionConfig] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        self._store = event_store
        self._ledger = job_ledger
        self._config = config or IngestionConfig()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self._config.max_workers,
            thread_name_prefix="ingestion"
        )

    # =========================================================================
    # PUBLIC INTERFACE
    # =========================================================================

    def start_ingestion(self, file_path: str) -> IngestionTicket:
        """
        Validate the file, create the job and schedule the import.

        Raises IngestionStartError if the file is not readable; no job is
        created in that case.
        """
        file_path = str(file_path)
        if not os.path.isfile(file_path):
            raise IngestionStartError(f"Failed to start ingestion: file not found: {file_path}")
        if not os.access(file_path, os.R_OK):
            raise IngestionStartError(f"Failed to start ingestion: file not readable: {file_path}")

        job = self._ledger.create(JobState.start(file_path))
        logger.info("Job %s created for %s", job.job_id, file_path)

        future = self._executor.submit(self._run_job, job.job_id, file_path)
        future.add_done_callback(self._report_escaped_failure(job.job_id))

        return IngestionTicket(job_id=job.job_id, task=IngestionTask(job.job_id, future))

    def get_job_status(self, job_id: str) -> JobState:
        """Raises JobNotFoundError for unknown ids."""
        return self._ledger.get(job_id)

    def list_jobs(self, status: Optional[JobStatus] = None, limit: Optional[int] = None) -> List[JobState]:
        return self._ledger.list(status=status, limit=limit)

    def shutdown(self, wait: bool = True):
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    # =========================================================================
    # BACKGROUND TASK
    # =========================================================================

    def _run_job(self, job_id: str, file_path: str) -> JobOutcome:
        """Task body. Every failure ends in a terminal ledger entry."""
        try:
            return JobOutcome(state=self._process_file(job_id, file_path))
        except Exception as e:
            logger.error("Job %s failed: %s", job_id, e, exc_info=True)
            failed = self._ledger.apply(
                job_id, JobFailed(message=f"Processing failed: {e}", at=utc_now())
            )
            return JobOutcome(state=failed, error=e)

    @staticmethod
    def _report_escaped_failure(job_id: str):
        def callback(future: Future):
            if future.cancelled():
                return
            escaped = future.exception()
            if escaped is not None:
                logger.critical(
                    "Job %s task crashed outside the pipeline: %s", job_id, escaped,
                    exc_info=escaped
                )
        return callback

    def _count_lines(self, file_path: str) -> int:
        with open(file_path, 'r', encoding=self._config.encoding) as stream:
            return sum(1 for _ in stream)

    def _process_file(self, job_id: str, file_path: str) -> JobState:
        logger.info("Starting file processing for job %s", job_id)

        total_lines = self._count_lines(file_path)
        self._ledger.apply(job_id, TotalLinesCounted(total_lines=total_lines))

        counters = _Counters()
        batch: List[EventDraft] = []
        batch_lines: List[int] = []
        line_number = 0

        with open(file_path, 'r', encoding=self._config.encoding) as stream:
            for raw in stream:
                line_number += 1

                result = parse_line(raw, line_number, file_path)
                if result is not None:
                    if result.is_success:
                        batch.append(result.draft)
                        batch_lines.append(line_number)
                    else:
                        counters.errors += 1
                        self._ledger.apply(job_id, LineRejected(
                            line_number=line_number,
                            message=f"Line {line_number}: {result.error.message}"
                        ))
                        logger.warning("Job %s line %d: %s", job_id, line_number, result.error.message)

                if len(batch) >= self._config.batch_size:
                    self._commit_batch(job_id, batch, batch_lines, counters)
                    batch, batch_lines = [], []

                if line_number % self._config.progress_interval == 0:
                    self._ledger.apply(job_id, ProgressReported(
                        processed_lines=counters.processed,
                        error_lines=counters.errors
                    ))

        if batch:
            self._commit_batch(job_id, batch, batch_lines, counters)

        final = self._ledger.apply(job_id, JobCompleted(
            processed_lines=counters.processed,
            error_lines=counters.errors,
            at=utc_now()
        ))
        logger.info(
            "Job %s completed. Processed: %d, Errors: %d",
            job_id, counters.processed, counters.errors
        )
        return final

    def _commit_batch(
        self,
        job_id: str,
        batch: List[EventDraft],
        batch_lines: List[int],
        counters: _Counters
    ):
        """One atomic group. A rejected batch is discarded, not retried."""
        try:
            self._store.bulk_create(batch)
        except ConstraintViolation as e:
            counters.errors += len(batch)
            logger.error(
                "Job %s: batch for lines %d-%d rejected: %s",
                job_id, batch_lines[0], batch_lines[-1], e.message
            )
            self._ledger.apply(job_id, BatchRejected(
                first_line=batch_lines[0],
                last_line=batch_lines[-1],
                size=len(batch),
                message=e.message
            ))
            return
        counters.processed += len(batch)
