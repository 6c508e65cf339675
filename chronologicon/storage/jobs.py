"""
Job Ledger

Durable keyed storage for ingestion job state.

The ledger never decides HOW a job changes; it only persists what
JobState.apply() returns. Each apply() is atomic relative to every other
mutation of the same job, so a counter update and a status change can
never overwrite each other.
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union
import json
import sqlite3
import threading

from ..contracts.base import ensure_utc
from ..contracts.errors import ChronologiconError, JobNotFoundError
from ..contracts.jobs import JobCommand, JobError, JobStatus
from ..temporal.state_machine import JobState


class JobLedger:
    """Abstract job ledger interface."""

    def create(self, job: JobState) -> JobState:
        raise NotImplementedError

    def get(self, job_id: str) -> JobState:
        """Raises JobNotFoundError for unknown ids."""
        raise NotImplementedError

    def apply(self, job_id: str, command: JobCommand) -> JobState:
        """Atomically apply one command and return the new snapshot."""
        raise NotImplementedError

    def list(self, status: Optional[JobStatus] = None, limit: Optional[int] = None) -> List[JobState]:
        """Jobs newest first, optionally filtered by status."""
        raise NotImplementedError


class InMemoryJobLedger(JobLedger):
    """In-memory ledger. One lock serializes every mutation."""

    def __init__(self):
        self._jobs: Dict[str, JobState] = {}
        self._order: List[str] = []
        self._lock = threading.Lock()

    def create(self, job: JobState) -> JobState:
        with self._lock:
            if job.job_id in self._jobs:
                raise ChronologiconError(f"Job already exists: {job.job_id}")
            self._jobs[job.job_id] = job
            self._order.append(job.job_id)
        return job

    def get(self, job_id: str) -> JobState:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def apply(self, job_id: str, command: JobCommand) -> JobState:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise JobNotFoundError(job_id)
            updated = current.apply(command)
            self._jobs[job_id] = updated
        return updated

    def list(self, status: Optional[JobStatus] = None, limit: Optional[int] = None) -> List[JobState]:
        with self._lock:
            jobs = [self._jobs[job_id] for job_id in reversed(self._order)]
        if status is not None:
            jobs = [j for j in jobs if j.status is status]
        return jobs[:limit] if limit is not None else jobs


# =============================================================================
# SQLITE LEDGER
# =============================================================================

def _errors_to_json(errors) -> str:
    return json.dumps([{'line_number': e.line_number, 'message': e.message} for e in errors])


def _errors_from_json(text: str):
    return tuple(JobError(item.get('line_number'), item['message']) for item in json.loads(text or '[]'))


def _dt(value: Optional[str]) -> Optional[datetime]:
    return ensure_utc(datetime.fromisoformat(value)) if value else None


class SqliteJobLedger(JobLedger):
    """
    Persistent ledger backed by SQLite.

    apply() runs read-transition-write inside BEGIN IMMEDIATE, which takes
    the database write lock before reading.
    """

    def __init__(self, db_path: Union[str, Path]):
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with self._get_conn() as conn:
            conn.executescript('''
                CREATE TABLE IF NOT EXISTS ingestion_jobs (
                    job_id TEXT PRIMARY KEY,
                    status TEXT NOT NULL DEFAULT 'PROCESSING'
                        CHECK (status IN ('PROCESSING', 'COMPLETED', 'FAILED')),
                    file_path TEXT,
                    total_lines INTEGER,
                    processed_lines INTEGER NOT NULL DEFAULT 0,
                    error_lines INTEGER NOT NULL DEFAULT 0,
                    errors TEXT NOT NULL DEFAULT '[]',
                    start_time TEXT NOT NULL,
                    end_time TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_jobs_status ON ingestion_jobs(status);
                CREATE INDEX IF NOT EXISTS idx_jobs_start ON ingestion_jobs(start_time);
            ''')

    @contextmanager
    def _get_conn(self):
        """Connection in manual transaction mode."""
        conn = sqlite3.connect(self._db_path, timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> JobState:
        return JobState(
            job_id=row['job_id'],
            file_path=row['file_path'],
            status=JobStatus(row['status']),
            total_lines=row['total_lines'],
            processed_lines=row['processed_lines'],
            error_lines=row['error_lines'],
            errors=_errors_from_json(row['errors']),
            start_time=_dt(row['start_time']),
            end_time=_dt(row['end_time'])
        )

    def create(self, job: JobState) -> JobState:
        with self._get_conn() as conn:
            try:
                conn.execute('''
                    INSERT INTO ingestion_jobs
                    (job_id, status, file_path, total_lines, processed_lines,
                     error_lines, errors, start_time, end_time)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''', (
                    job.job_id,
                    job.status.value,
                    job.file_path,
                    job.total_lines,
                    job.processed_lines,
                    job.error_lines,
                    _errors_to_json(job.errors),
                    job.start_time.isoformat(),
                    job.end_time.isoformat() if job.end_time else None
                ))
            except sqlite3.IntegrityError as e:
                raise ChronologiconError(f"Job already exists: {job.job_id}") from e
        return job

    def get(self, job_id: str) -> JobState:
        with self._get_conn() as conn:
            row = conn.execute('SELECT * FROM ingestion_jobs WHERE job_id = ?', (job_id,)).fetchone()
        if row is None:
            raise JobNotFoundError(job_id)
        return self._row_to_job(row)

    def apply(self, job_id: str, command: JobCommand) -> JobState:
        with self._get_conn() as conn:
            conn.execute('BEGIN IMMEDIATE')
            try:
                row = conn.execute(
                    'SELECT * FROM ingestion_jobs WHERE job_id = ?', (job_id,)
                ).fetchone()
                if row is None:
                    raise JobNotFoundError(job_id)

                updated = self._row_to_job(row).apply(command)

                conn.execute('''
                    UPDATE ingestion_jobs
                    SET status = ?, total_lines = ?, processed_lines = ?,
                        error_lines = ?, errors = ?, end_time = ?
                    WHERE job_id = ?
                ''', (
                    updated.status.value,
                    updated.total_lines,
                    updated.processed_lines,
                    updated.error_lines,
                    _errors_to_json(updated.errors),
                    updated.end_time.isoformat() if updated.end_time else None,
                    job_id
                ))
                conn.execute('COMMIT')
            except Exception:
                conn.execute('ROLLBACK')
                raise
        return updated

    def list(self, status: Optional[JobStatus] = None, limit: Optional[int] = None) -> List[JobState]:
        query = 'SELECT * FROM ingestion_jobs'
        values: List[object] = []
        if status is not None:
            query += ' WHERE status = ?'
            values.append(status.value)
        query += ' ORDER BY start_time DESC, rowid DESC'
        if limit is not None:
            query += ' LIMIT ?'
            values.append(limit)

        with self._get_conn() as conn:
            rows = conn.execute(query, values).fetchall()
        return [self._row_to_job(row) for row in rows]
