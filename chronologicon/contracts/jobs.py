"""
Job Contracts

Typed vocabulary for ingestion jobs: status, error entries and the closed
set of commands that may change a job.

Jobs are NEVER updated through ad hoc field patches. Every change is one
of the commands below, applied by the state machine.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class JobStatus(Enum):
    """
    Explicit job lifecycle states.

    PROCESSING -> COMPLETED
    PROCESSING -> FAILED
    No other transitions exist.
    """
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


@dataclass(frozen=True)
class JobError:
    """Append-only error entry. line_number is None for job-level failures."""
    line_number: Optional[int]
    message: str


# =============================================================================
# COMMANDS
# =============================================================================

@dataclass(frozen=True)
class TotalLinesCounted:
    """Pre-count pass finished."""
    total_lines: int


@dataclass(frozen=True)
class LineRejected:
    """One input line failed to parse."""
    line_number: int
    message: str


@dataclass(frozen=True)
class BatchRejected:
    """The event store refused a whole batch; every record becomes an error."""
    first_line: int
    last_line: int
    size: int
    message: str


@dataclass(frozen=True)
class ProgressReported:
    """Periodic counter flush from the driving task."""
    processed_lines: int
    error_lines: int


@dataclass(frozen=True)
class JobCompleted:
    processed_lines: int
    error_lines: int
    at: datetime


@dataclass(frozen=True)
class JobFailed:
    message: str
    at: datetime


JobCommand = Union[
    TotalLinesCounted, LineRejected, BatchRejected,
    ProgressReported, JobCompleted, JobFailed
]
