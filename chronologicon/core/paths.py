"""
Shortest-Path Engine (Event Influence)

Dijkstra over an EventGraph. Edge weight is the duration of the event
being entered, non-negative by the start < end invariant.

OUTPUT:
- PathResult with the ordered events source..target inclusive and the
  accumulated weight, or PathResult.no_path() when the target cannot be
  reached in the parent -> child direction.

Ties among equal-distance frontier entries break by insertion order.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Tuple
import heapq
import itertools

from ..contracts.events import HistoricalEvent
from .graph import EventGraph


PATH_FOUND_MESSAGE = "Shortest temporal path found from source to target event."
NO_PATH_MESSAGE = "No temporal path found from source to target event."


@dataclass(frozen=True)
class PathResult:
    """Outcome of one influence query. An unreachable target is a result, not an error."""
    source_event_id: str
    target_event_id: str
    path: Tuple[HistoricalEvent, ...] = field(default_factory=tuple)
    total_duration_minutes: int = 0
    message: str = PATH_FOUND_MESSAGE

    @property
    def found(self) -> bool:
        return bool(self.path)

    @staticmethod
    def no_path(source_event_id: str, target_event_id: str) -> PathResult:
        return PathResult(
            source_event_id=source_event_id,
            target_event_id=target_event_id,
            message=NO_PATH_MESSAGE
        )


def _dijkstra(graph: EventGraph, source: int, target: int) -> Tuple[Dict[int, int], Dict[int, int]]:
    distances: Dict[int, int] = {source: 0}
    previous: Dict[int, int] = {}
    visited = set()
    sequence = itertools.count()
    frontier: List[Tuple[int, int, int]] = [(0, next(sequence), source)]

    while frontier:
        distance, _, current = heapq.heappop(frontier)
        if current in visited:
            continue
        visited.add(current)
        if current == target:
            break

        for child in graph.children_of(current):
            if child in visited:
                continue
            candidate = distance + graph.weight(child)
            if candidate < distances.get(child, float('inf')):
                distances[child] = candidate
                previous[child] = current
                heapq.heappush(frontier, (candidate, next(sequence), child))

    return distances, previous


def find_shortest_path(graph: EventGraph, source_event_id: str, target_event_id: str) -> PathResult:
    """
    Minimum-total-duration chain from source to target.

    Unknown ids on either side yield no_path. Callers are expected to
    reject source == target before calling; if they do not, the trivial
    single-node path with weight 0 is returned.
    """
    source = graph.handle_of(source_event_id)
    target = graph.handle_of(target_event_id)
    if source is None or target is None:
        return PathResult.no_path(source_event_id, target_event_id)

    distances, previous = _dijkstra(graph, source, target)
    if target not in distances:
        return PathResult.no_path(source_event_id, target_event_id)

    handles = [target]
    while handles[-1] != source:
        handles.append(previous[handles[-1]])
    handles.reverse()

    return PathResult(
        source_event_id=source_event_id,
        target_event_id=target_event_id,
        path=tuple(graph.event_at(h) for h in handles),
        total_duration_minutes=distances[target]
    )
