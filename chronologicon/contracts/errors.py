"""
Exception Contracts

Failures the CALLER must react to are raised as exceptions.
Failures the pipeline tolerates (bad lines, rejected batches) are
recorded as Error data instead and never raised.

Every exception carries an explicit ErrorCode.
"""

from __future__ import annotations

from .base import ErrorCode


class ChronologiconError(Exception):
    """Base class for all explicit failures."""

    code: ErrorCode = ErrorCode.JOB_FATAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class IngestionStartError(ChronologiconError):
    """The source file cannot be read; no job was created."""
    code = ErrorCode.SOURCE_UNREADABLE


class ConstraintViolation(ChronologiconError):
    """The event store rejected a write (duplicate id, dangling parent, ...)."""
    code = ErrorCode.CONSTRAINT_VIOLATION


class JobNotFoundError(ChronologiconError):
    code = ErrorCode.JOB_NOT_FOUND

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class EventNotFoundError(ChronologiconError):
    code = ErrorCode.EVENT_NOT_FOUND

    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class InvalidJobTransition(ChronologiconError):
    """A command was applied to a job that cannot accept it."""
    code = ErrorCode.INVALID_STATE_TRANSITION


class QueryValidationError(ChronologiconError):
    """Query parameters are malformed (same source and target, empty window...)."""
    code = ErrorCode.INVALID_QUERY
