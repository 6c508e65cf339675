"""
Test Fixtures

Factories for events, raw lines and event files.

RULES:
======
1. All fixtures are EXPLICIT, not random (hypothesis strategies live in the tests)
2. Times are fixed UTC instants so expectations can be written by hand
3. Event ids are derived from a short name, so tests read as "A", "B", "C"
"""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, List, Optional
import uuid

from chronologicon.contracts.events import EventDraft, HistoricalEvent


BASE_TIME = datetime(2023, 1, 1, 10, 0, tzinfo=timezone.utc)
FIXTURE_NAMESPACE = uuid.UUID("6f1c2d3e-4b5a-4c6d-8e7f-9a0b1c2d3e4f")


def event_id(name: str) -> str:
    """Stable version-5 UUID for a short fixture name."""
    return str(uuid.uuid5(FIXTURE_NAMESPACE, name))


def at(minutes: int) -> datetime:
    """BASE_TIME shifted by minutes."""
    return BASE_TIME + timedelta(minutes=minutes)


def make_event(
    name: str,
    start: int,
    end: int,
    parent: Optional[str] = None,
    description: Optional[str] = None
) -> HistoricalEvent:
    """Event named name spanning [at(start), at(end)], parent given by name."""
    return HistoricalEvent(
        event_id=event_id(name),
        event_name=name,
        start_date=at(start),
        end_date=at(end),
        parent_event_id=event_id(parent) if parent else None,
        description=description
    )


def make_draft(name: str, start: int, end: int, parent: Optional[str] = None) -> EventDraft:
    return EventDraft(
        event_id=event_id(name),
        event_name=name,
        start_date=at(start),
        end_date=at(end),
        parent_event_id=event_id(parent) if parent else None
    )


def iso(value: datetime) -> str:
    return value.isoformat().replace('+00:00', 'Z')


def make_line(
    name: str,
    start: int,
    end: int,
    parent: Optional[str] = None,
    description: str = "",
    raw_id: Optional[str] = None
) -> str:
    """Pipe-delimited line for a fixture event. raw_id overrides the id field verbatim."""
    return "|".join([
        raw_id if raw_id is not None else event_id(name),
        name,
        iso(at(start)),
        iso(at(end)),
        event_id(parent) if parent else "NULL",
        description,
    ])


def chain_lines(count: int, prefix: str = "E") -> List[str]:
    """count valid root-level lines with distinct ids."""
    return [make_line(f"{prefix}{i}", i, i + 30) for i in range(count)]


def write_event_file(directory: Path, lines: Iterable[str], name: str = "events.txt") -> Path:
    path = Path(directory) / name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
