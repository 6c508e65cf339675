"""
Event Contracts

Immutable data types flowing from the parser into storage and out to
analytics.

    raw line --(parser)--> EventDraft --(store)--> HistoricalEvent

WHAT THESE TYPES MUST NOT CONTAIN:
- Stored durations (duration is always derived from the dates)
- Mutable children lists (hierarchy is a computed view)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from .base import Error, ensure_utc, minutes_between


def _freeze(metadata: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(metadata or {}))


# =============================================================================
# PARSER OUTPUT
# =============================================================================

@dataclass(frozen=True)
class EventDraft:
    """
    Validated but not yet stored event.

    Produced by the line parser. Parent existence is NOT verified here;
    the event store enforces it at commit time.
    """
    event_id: str
    event_name: str
    start_date: datetime
    end_date: datetime
    parent_event_id: Optional[str] = None
    description: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, 'start_date', ensure_utc(self.start_date))
        object.__setattr__(self, 'end_date', ensure_utc(self.end_date))
        object.__setattr__(self, 'metadata', _freeze(self.metadata))

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start_date, self.end_date)


@dataclass(frozen=True)
class LineError:
    """A single rejected input line."""
    line_number: int
    error: Error

    @property
    def message(self) -> str:
        return self.error.message


@dataclass(frozen=True)
class ParseResult:
    """Either a draft OR a line error, never both."""
    draft: Optional[EventDraft] = None
    error: Optional[LineError] = None

    @property
    def is_success(self) -> bool:
        return self.error is None


# =============================================================================
# STORED EVENT
# =============================================================================

@dataclass(frozen=True)
class HistoricalEvent:
    """
    Stored, immutable historical event.

    INVARIANTS:
    - start_date < end_date
    - parent_event_id references an event that existed at insert time
    - duration_minutes is derived, never stored
    """
    event_id: str
    event_name: str
    start_date: datetime
    end_date: datetime
    parent_event_id: Optional[str] = None
    description: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, 'start_date', ensure_utc(self.start_date))
        object.__setattr__(self, 'end_date', ensure_utc(self.end_date))
        object.__setattr__(self, 'metadata', _freeze(self.metadata))

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start_date, self.end_date)

    @staticmethod
    def from_draft(draft: EventDraft) -> HistoricalEvent:
        return HistoricalEvent(
            event_id=draft.event_id,
            event_name=draft.event_name,
            start_date=draft.start_date,
            end_date=draft.end_date,
            parent_event_id=draft.parent_event_id,
            description=draft.description,
            metadata=draft.metadata
        )


# =============================================================================
# QUERY CONTRACTS
# =============================================================================

SORTABLE_FIELDS = ("start_date", "end_date", "event_name", "duration_minutes")


@dataclass(frozen=True)
class SearchFilters:
    """Filters and pagination for event search."""
    name: Optional[str] = None
    start_date_after: Optional[datetime] = None
    end_date_before: Optional[datetime] = None
    sort_by: str = "start_date"
    sort_order: str = "asc"
    page: int = 1
    limit: int = 10

    def __post_init__(self):
        if self.sort_by not in SORTABLE_FIELDS:
            raise ValueError(f"sort_by must be one of {', '.join(SORTABLE_FIELDS)}")
        if self.sort_order not in ("asc", "desc"):
            raise ValueError("sort_order must be 'asc' or 'desc'")
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= self.limit <= 100:
            raise ValueError("limit must be between 1 and 100")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class SearchPage:
    events: Tuple[HistoricalEvent, ...]
    total_events: int
    page: int
    limit: int


@dataclass(frozen=True)
class TimelineNode:
    """One node of a reconstructed hierarchy (computed view)."""
    event: HistoricalEvent
    level: int
    children: Tuple[TimelineNode, ...] = field(default_factory=tuple)
