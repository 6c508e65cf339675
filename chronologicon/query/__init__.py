"""
Query & Statistics

RESPONSIBILITY: Filtered search, single-event reads and writes, aggregate statistics
ALLOWED INPUTS: SearchFilters, EventDraft, event ids
OUTPUTS: SearchPage, HistoricalEvent, EventStatistics

WHAT THIS LAYER MUST NOT DO:
============================
- Parse raw input lines
- Touch the job ledger
- Access storage other than through the EventStore interface
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import logging

import networkx as nx

from ..contracts.errors import EventNotFoundError
from ..contracts.events import EventDraft, HistoricalEvent, SearchFilters, SearchPage
from ..core.graph import build_event_graph
from ..storage.events import EventStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventStatistics:
    """Aggregate view over the whole event set."""
    total_events: int
    root_events: int
    child_events: int
    avg_duration_minutes: int
    longest_event_duration: int
    shortest_event_duration: int
    earliest_event: Optional[datetime]
    latest_event: Optional[datetime]
    max_hierarchy_depth: int
    is_forest: bool


class EventQueryService:
    """Read side of the event store plus single-event creation."""

    def __init__(self, store: EventStore):
        self._store = store

    def search(self, filters: SearchFilters) -> SearchPage:
        return self._store.search(filters)

    def get_event(self, event_id: str) -> HistoricalEvent:
        event = self._store.find_by_id(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def create_event(self, draft: EventDraft) -> HistoricalEvent:
        """Insert one event under the same constraints as a batch. Raises ConstraintViolation."""
        event = self._store.create(draft)
        logger.info("Created event %s", event.event_id)
        return event

    def statistics(self) -> EventStatistics:
        events = self._store.all_events()
        if not events:
            return EventStatistics(
                total_events=0, root_events=0, child_events=0,
                avg_duration_minutes=0, longest_event_duration=0, shortest_event_duration=0,
                earliest_event=None, latest_event=None,
                max_hierarchy_depth=0, is_forest=True
            )

        durations = [e.duration_minutes for e in events]
        roots = sum(1 for e in events if e.parent_event_id is None)
        hierarchy = build_event_graph(events).to_networkx()

        is_forest = nx.is_branching(hierarchy)
        # Depth in edges of the longest root-to-leaf chain
        depth = nx.dag_longest_path_length(hierarchy, weight=None) if is_forest else 0

        return EventStatistics(
            total_events=len(events),
            root_events=roots,
            child_events=len(events) - roots,
            avg_duration_minutes=int(round(sum(durations) / len(durations))),
            longest_event_duration=max(durations),
            shortest_event_duration=min(durations),
            earliest_event=min(e.start_date for e in events),
            latest_event=max(e.end_date for e in events),
            max_hierarchy_depth=depth,
            is_forest=is_forest
        )


__all__ = ["EventQueryService", "EventStatistics"]
