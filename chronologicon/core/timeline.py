"""
Timeline Builder

Reconstructs the hierarchy below one root event as nested TimelineNodes.
"""

from __future__ import annotations
from typing import Dict, List

from ..contracts.errors import EventNotFoundError
from ..contracts.events import TimelineNode
from ..storage.events import EventStore


def build_timeline(store: EventStore, root_event_id: str) -> TimelineNode:
    """
    Nested tree rooted at root_event_id.

    Children at every level are ordered by start date. Raises
    EventNotFoundError for an unknown root.
    """
    rows = store.descendants(root_event_id)
    if not rows:
        raise EventNotFoundError(root_event_id)

    children: Dict[str, List] = {}
    for event, level in rows[1:]:
        children.setdefault(event.parent_event_id, []).append((event, level))

    def assemble(event, level) -> TimelineNode:
        return TimelineNode(
            event=event,
            level=level,
            children=tuple(assemble(child, child_level) for child, child_level in children.get(event.event_id, []))
        )

    root, root_level = rows[0]
    return assemble(root, root_level)
