"""
Event Store

Durable keyed storage for historical events.

WHAT THIS LAYER MUST NOT DO:
============================
- Parse or interpret raw input
- Build hierarchies or graphs (that's the core layer's job)
- Partially apply a batch

GUARANTEES:
===========
1. bulk_create is ATOMIC - every event lands or none does
2. A parent must exist (already stored or earlier in the same batch)
3. Stored events are never modified
"""

from __future__ import annotations
from collections import ChainMap
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union
import json
import sqlite3
import threading

from ..contracts.errors import ConstraintViolation
from ..contracts.events import (
    EventDraft, HistoricalEvent, SearchFilters, SearchPage
)


Insertable = Union[EventDraft, HistoricalEvent]


def _as_event(item: Insertable) -> HistoricalEvent:
    if isinstance(item, HistoricalEvent):
        return item
    return HistoricalEvent.from_draft(item)


# =============================================================================
# STORAGE INTERFACE (Dependency Inversion)
# =============================================================================

class EventStore:
    """
    Abstract event store interface.

    Implementations can use different storage systems (memory, SQLite)
    while keeping the same atomic, append-only semantics.
    """

    def create(self, event: Insertable) -> HistoricalEvent:
        """Insert one event. Raises ConstraintViolation."""
        return self.bulk_create([event])[0]

    def bulk_create(self, events: Sequence[Insertable]) -> List[HistoricalEvent]:
        """Insert events as one atomic group. Raises ConstraintViolation."""
        raise NotImplementedError

    def find_by_id(self, event_id: str) -> Optional[HistoricalEvent]:
        raise NotImplementedError

    def descendants(self, root_id: str) -> List[Tuple[HistoricalEvent, int]]:
        """
        Root and all its descendants with their depth (root = 0),
        ordered by depth then start date. Empty if root is unknown.
        """
        raise NotImplementedError

    def all_events(self) -> List[HistoricalEvent]:
        """Full scan in insertion order."""
        raise NotImplementedError

    def search(self, filters: SearchFilters) -> SearchPage:
        raise NotImplementedError

    def count(self) -> int:
        return len(self.all_events())


# =============================================================================
# IN-MEMORY STORE (Reference Implementation)
# =============================================================================

def check_constraints(event: HistoricalEvent, known: Mapping[str, HistoricalEvent]):
    """The same integrity rules the SQL schema enforces."""
    if event.event_id in known:
        raise ConstraintViolation(f"Duplicate event_id: {event.event_id}")
    if not event.event_name.strip():
        raise ConstraintViolation(f"Event {event.event_id} has an empty name")
    if event.start_date >= event.end_date:
        raise ConstraintViolation(f"Event {event.event_id} starts at or after its end")
    if event.parent_event_id is not None:
        if event.parent_event_id == event.event_id:
            raise ConstraintViolation(f"Event {event.event_id} cannot be its own parent")
        if event.parent_event_id not in known:
            raise ConstraintViolation(
                f"Event {event.event_id} references missing parent {event.parent_event_id}"
            )


def _sort_key(filters: SearchFilters):
    return lambda e: (getattr(e, filters.sort_by), e.event_id)


def matches_filters(event: HistoricalEvent, filters: SearchFilters) -> bool:
    if filters.name and filters.name.lower() not in event.event_name.lower():
        return False
    if filters.start_date_after and event.start_date < filters.start_date_after:
        return False
    if filters.end_date_before and event.end_date > filters.end_date_before:
        return False
    return True


class InMemoryEventStore(EventStore):
    """
    In-memory implementation of the event store.

    Suitable for testing and small-scale deployments.
    A single lock serializes writers; readers get a copied snapshot.
    """

    def __init__(self):
        self._events: Dict[str, HistoricalEvent] = {}
        self._lock = threading.RLock()

    def bulk_create(self, events: Sequence[Insertable]) -> List[HistoricalEvent]:
        stored = [_as_event(item) for item in events]
        with self._lock:
            pending: Dict[str, HistoricalEvent] = {}
            known = ChainMap(pending, self._events)
            for event in stored:
                check_constraints(event, known)
                pending[event.event_id] = event
            # Nothing is visible until every event passed
            self._events.update(pending)
        return stored

    def find_by_id(self, event_id: str) -> Optional[HistoricalEvent]:
        with self._lock:
            return self._events.get(event_id.lower())

    def descendants(self, root_id: str) -> List[Tuple[HistoricalEvent, int]]:
        snapshot = self.all_events()
        by_id = {e.event_id: e for e in snapshot}
        root = by_id.get(root_id.lower())
        if root is None:
            return []

        children: Dict[str, List[HistoricalEvent]] = {}
        for event in snapshot:
            if event.parent_event_id is not None:
                children.setdefault(event.parent_event_id, []).append(event)

        result = [(root, 0)]
        frontier = [root]
        level = 0
        while frontier:
            level += 1
            next_frontier = []
            for parent in frontier:
                next_frontier.extend(children.get(parent.event_id, []))
            next_frontier.sort(key=lambda e: (e.start_date, e.event_id))
            result.extend((e, level) for e in next_frontier)
            frontier = next_frontier
        return result

    def all_events(self) -> List[HistoricalEvent]:
        with self._lock:
            return list(self._events.values())

    def search(self, filters: SearchFilters) -> SearchPage:
        matched = [e for e in self.all_events() if matches_filters(e, filters)]
        matched.sort(key=_sort_key(filters), reverse=filters.sort_order == "desc")
        page = matched[filters.offset:filters.offset + filters.limit]
        return SearchPage(
            events=tuple(page),
            total_events=len(matched),
            page=filters.page,
            limit=filters.limit
        )

    def count(self) -> int:
        with self._lock:
            return len(self._events)


# =============================================================================
# SQLITE STORE
# =============================================================================

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


def to_micros(value: datetime) -> int:
    """Instants are stored as integer microseconds since the epoch (UTC)."""
    return (value - _EPOCH) // _MICROSECOND


def from_micros(value: int) -> datetime:
    return _EPOCH + timedelta(microseconds=value)


def escape_like(text: str) -> str:
    """Make a LIKE pattern match text literally (used with ESCAPE '\\')."""
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


_SORT_COLUMNS = {
    "start_date": "start_date",
    "end_date": "end_date",
    "event_name": "event_name",
    # Rounded half up, matching HistoricalEvent.duration_minutes
    "duration_minutes": "((end_date - start_date + 30000000) / 60000000)",
}

_COLUMNS = "event_id, event_name, description, start_date, end_date, parent_event_id, metadata"


class SqliteEventStore(EventStore):
    """
    Persistent event store backed by SQLite.

    Integrity (parent references, date order, unique ids) is enforced by
    the schema itself; a batch is one transaction.
    """

    def __init__(self, db_path: Union[str, Path]):
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        with self._get_conn() as conn:
            conn.executescript('''
                CREATE TABLE IF NOT EXISTS historical_events (
                    event_id TEXT PRIMARY KEY,
                    event_name TEXT NOT NULL CHECK (length(trim(event_name)) > 0),
                    description TEXT,
                    start_date INTEGER NOT NULL,
                    end_date INTEGER NOT NULL,
                    parent_event_id TEXT
                        REFERENCES historical_events(event_id) ON DELETE CASCADE,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    CHECK (end_date > start_date),
                    CHECK (parent_event_id IS NULL OR parent_event_id <> event_id)
                );

                CREATE INDEX IF NOT EXISTS idx_events_start ON historical_events(start_date);
                CREATE INDEX IF NOT EXISTS idx_events_end ON historical_events(end_date);
                CREATE INDEX IF NOT EXISTS idx_events_parent ON historical_events(parent_event_id);
                CREATE INDEX IF NOT EXISTS idx_events_name ON historical_events(event_name);
            ''')

    @contextmanager
    def _get_conn(self):
        """Get database connection with foreign keys enforced."""
        conn = sqlite3.connect(self._db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> HistoricalEvent:
        return HistoricalEvent(
            event_id=row['event_id'],
            event_name=row['event_name'],
            description=row['description'],
            start_date=from_micros(row['start_date']),
            end_date=from_micros(row['end_date']),
            parent_event_id=row['parent_event_id'],
            metadata=json.loads(row['metadata'] or '{}')
        )

    @staticmethod
    def _event_to_row(event: HistoricalEvent) -> tuple:
        return (
            event.event_id,
            event.event_name,
            event.description,
            to_micros(event.start_date),
            to_micros(event.end_date),
            event.parent_event_id,
            json.dumps(dict(event.metadata))
        )

    # =========================================================================
    # WRITES
    # =========================================================================

    def bulk_create(self, events: Sequence[Insertable]) -> List[HistoricalEvent]:
        stored = [_as_event(item) for item in events]
        if not stored:
            return []
        try:
            with self._get_conn() as conn:
                conn.executemany(
                    f'INSERT INTO historical_events ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)',
                    [self._event_to_row(e) for e in stored]
                )
        except sqlite3.IntegrityError as e:
            raise ConstraintViolation(f"Batch rejected by event store: {e}") from e
        return stored

    # =========================================================================
    # QUERIES
    # =========================================================================

    def find_by_id(self, event_id: str) -> Optional[HistoricalEvent]:
        with self._get_conn() as conn:
            row = conn.execute(
                f'SELECT {_COLUMNS} FROM historical_events WHERE event_id = ?',
                (event_id.lower(),)
            ).fetchone()
        return self._row_to_event(row) if row else None

    def descendants(self, root_id: str) -> List[Tuple[HistoricalEvent, int]]:
        with self._get_conn() as conn:
            rows = conn.execute('''
                WITH RECURSIVE event_hierarchy AS (
                    SELECT event_id, event_name, description, start_date, end_date,
                           parent_event_id, metadata, 0 AS level
                    FROM historical_events
                    WHERE event_id = ?

                    UNION ALL

                    SELECT he.event_id, he.event_name, he.description, he.start_date,
                           he.end_date, he.parent_event_id, he.metadata, eh.level + 1
                    FROM historical_events he
                    INNER JOIN event_hierarchy eh ON he.parent_event_id = eh.event_id
                )
                SELECT * FROM event_hierarchy
                ORDER BY level, start_date, event_id
            ''', (root_id.lower(),)).fetchall()
        return [(self._row_to_event(row), row['level']) for row in rows]

    def all_events(self) -> List[HistoricalEvent]:
        with self._get_conn() as conn:
            rows = conn.execute(
                f'SELECT {_COLUMNS} FROM historical_events ORDER BY rowid'
            ).fetchall()
        return [self._row_to_event(row) for row in rows]

    def search(self, filters: SearchFilters) -> SearchPage:
        clauses = []
        values: List[object] = []

        if filters.name:
            clauses.append("LOWER(event_name) LIKE LOWER(?) ESCAPE '\\'")
            values.append(f'%{escape_like(filters.name)}%')
        if filters.start_date_after:
            clauses.append('start_date >= ?')
            values.append(to_micros(filters.start_date_after))
        if filters.end_date_before:
            clauses.append('end_date <= ?')
            values.append(to_micros(filters.end_date_before))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ''
        # Column and direction come from closed whitelists, never from input
        order_column = _SORT_COLUMNS[filters.sort_by]
        direction = 'DESC' if filters.sort_order == 'desc' else 'ASC'

        with self._get_conn() as conn:
            rows = conn.execute(
                f'SELECT {_COLUMNS} FROM historical_events {where} '
                f'ORDER BY {order_column} {direction}, event_id {direction} LIMIT ? OFFSET ?',
                (*values, filters.limit, filters.offset)
            ).fetchall()
            total = conn.execute(
                f'SELECT COUNT(*) FROM historical_events {where}', values
            ).fetchone()[0]

        return SearchPage(
            events=tuple(self._row_to_event(row) for row in rows),
            total_events=total,
            page=filters.page,
            limit=filters.limit
        )

    def count(self) -> int:
        with self._get_conn() as conn:
            return conn.execute('SELECT COUNT(*) FROM historical_events').fetchone()[0]

