"""
Core Analytics Layer

Read-only, stateless temporal-graph analytics over an event snapshot:
- graph: parent -> child arena with integer handles
- paths: Dijkstra influence paths
- intervals: overlaps and largest gap
- timeline: nested hierarchy below one root
"""

from .graph import EventGraph, build_event_graph
from .intervals import GapReport, OverlapPair, TemporalGap, find_largest_gap, find_overlaps
from .paths import PathResult, find_shortest_path
from .timeline import build_timeline

__all__ = [
    "EventGraph", "build_event_graph",
    "PathResult", "find_shortest_path",
    "OverlapPair", "TemporalGap", "GapReport", "find_overlaps", "find_largest_gap",
    "build_timeline",
]
