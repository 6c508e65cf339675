"""
Base Contracts and Shared Types

Foundational types and helpers shared by every layer: error codes,
immutable value types, UUID checks and UTC timestamp handling.
Value types validate themselves on construction; nothing here does I/O.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from enum import Enum, auto
import re


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent fallbacks - every error state is enumerated.
    """
    # Line parsing errors (recorded per line, never fatal)
    MALFORMED_ENTRY = auto()
    INVALID_UUID = auto()
    MISSING_EVENT_NAME = auto()
    INVALID_DATE = auto()
    DATE_ORDER = auto()
    INVALID_PARENT_UUID = auto()

    # Storage errors
    CONSTRAINT_VIOLATION = auto()

    # Job errors
    SOURCE_UNREADABLE = auto()
    JOB_FATAL = auto()
    JOB_NOT_FOUND = auto()
    INVALID_STATE_TRANSITION = auto()

    # Query errors
    EVENT_NOT_FOUND = auto()
    INVALID_QUERY = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            context=self.context + ((key, value),)
        )


# =============================================================================
# IDENTITY
# =============================================================================

# Canonical 8-4-4-4-12 form, version nibble 1-5, variant nibble 8/9/a/b
UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE
)


def is_valid_uuid(value: str) -> bool:
    """True if value is a canonical UUID string."""
    return bool(UUID_PATTERN.match(value))


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

def ensure_utc(value: datetime) -> datetime:
    """All timestamps are UTC, never local time. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(text: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Raises ValueError for anything that is not a valid timestamp.
    """
    candidate = text.strip()
    if not candidate:
        raise ValueError("empty timestamp")
    if candidate.endswith(('Z', 'z')):
        candidate = candidate[:-1] + '+00:00'
    return ensure_utc(datetime.fromisoformat(candidate))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize as ISO-8601 with a trailing Z."""
    if value is None:
        return None
    return ensure_utc(value).isoformat().replace('+00:00', 'Z')


@dataclass(frozen=True)
class TimeRange:
    """Immutable closed time range for queries."""
    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, 'start', ensure_utc(self.start))
        object.__setattr__(self, 'end', ensure_utc(self.end))
        if self.start >= self.end:
            raise ValueError("TimeRange start must be before end")

    def contains_interval(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and end <= self.end


_MINUTE = timedelta(minutes=1)
_HALF_MINUTE = timedelta(seconds=30)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, rounded half up to the nearest minute."""
    return (end - start + _HALF_MINUTE) // _MINUTE
