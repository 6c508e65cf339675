"""
Event Graph

Weighted parent -> child graph over a snapshot of events.

DESIGN:
=======
Arena of events addressed by dense integer handles:
- _index:    event_id -> handle
- _events:   handle -> HistoricalEvent
- _children: handle -> list of child handles

Edge weight is the CHILD's duration_minutes, so the cost of stepping into
an event is the time it spans. Built fresh per request; never cached.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional

import networkx as nx

from ..contracts.events import HistoricalEvent


class EventGraph:
    """
    Immutable-after-build adjacency over events.

    Every event is a node, including isolated ones. Parent references to
    events outside the snapshot produce no edge.
    """

    def __init__(self):
        self._index: Dict[str, int] = {}
        self._events: List[HistoricalEvent] = []
        self._children: List[List[int]] = []
        self._edge_count = 0

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def from_events(cls, events: Iterable[HistoricalEvent]) -> EventGraph:
        graph = cls()
        for event in events:
            if event.event_id not in graph._index:
                graph._add_node(event)
        graph._link_parents()
        return graph

    def _add_node(self, event: HistoricalEvent) -> int:
        handle = len(self._events)
        self._index[event.event_id] = handle
        self._events.append(event)
        self._children.append([])
        return handle

    def _link_parents(self):
        for handle, event in enumerate(self._events):
            if event.parent_event_id is None:
                continue
            parent = self._index.get(event.parent_event_id)
            if parent is None:
                continue
            self._children[parent].append(handle)
            self._edge_count += 1

    # =========================================================================
    # ACCESS
    # =========================================================================

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return isinstance(event_id, str) and event_id.lower() in self._index

    @property
    def edge_count(self) -> int:
        return self._edge_count

    def handle_of(self, event_id: str) -> Optional[int]:
        return self._index.get(event_id.lower())

    def event_at(self, handle: int) -> HistoricalEvent:
        return self._events[handle]

    def children_of(self, handle: int) -> List[int]:
        return self._children[handle]

    def weight(self, handle: int) -> int:
        """Cost of entering the node at handle."""
        return self._events[handle].duration_minutes

    def roots(self) -> List[HistoricalEvent]:
        """Events with no parent inside this graph."""
        has_parent = {child for children in self._children for child in children}
        return [e for h, e in enumerate(self._events) if h not in has_parent]

    # =========================================================================
    # EXPORT
    # =========================================================================

    def to_networkx(self) -> nx.DiGraph:
        """Export as a networkx DiGraph keyed by event_id."""
        graph = nx.DiGraph()
        for event in self._events:
            graph.add_node(
                event.event_id,
                event_name=event.event_name,
                duration_minutes=event.duration_minutes
            )
        for parent, children in enumerate(self._children):
            parent_id = self._events[parent].event_id
            for child in children:
                graph.add_edge(parent_id, self._events[child].event_id, weight=self.weight(child))
        return graph


def build_event_graph(events: Iterable[HistoricalEvent]) -> EventGraph:
    """Materialize the graph from a full event snapshot."""
    return EventGraph.from_events(events)
