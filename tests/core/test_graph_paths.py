"""
Event Graph & Influence Path Tests
==================================

1. Every event is a node; edges only where the parent is present
2. Edge weight is the child's duration
3. Dijkstra agrees with networkx on path cost
4. Reverse direction and unknown ids yield an explicit no-path result
"""

import pytest
import networkx as nx
from hypothesis import given, settings, strategies as st
from hypothesis.strategies import composite

from chronologicon.core.graph import build_event_graph
from chronologicon.core.paths import NO_PATH_MESSAGE, PATH_FOUND_MESSAGE, find_shortest_path

from tests.fixtures import event_id, make_event


def chain():
    """A -> B (10 min) -> C (20 min)"""
    return [
        make_event("A", 0, 60),
        make_event("B", 0, 10, parent="A"),
        make_event("C", 0, 20, parent="B"),
    ]


class TestEventGraph:

    def test_nodes_and_edges(self):
        graph = build_event_graph(chain() + [make_event("Lonely", 0, 5)])

        assert len(graph) == 4
        assert graph.edge_count == 2
        assert event_id("Lonely") in graph

    def test_missing_parent_produces_no_edge(self):
        graph = build_event_graph([make_event("Orphan", 0, 5, parent="gone")])

        assert len(graph) == 1
        assert graph.edge_count == 0
        assert [e.event_name for e in graph.roots()] == ["Orphan"]

    def test_children_and_weights(self):
        graph = build_event_graph(chain())
        a = graph.handle_of(event_id("A"))
        b = graph.handle_of(event_id("B"))

        assert graph.children_of(a) == [b]
        assert graph.weight(b) == 10

    def test_networkx_export(self):
        exported = build_event_graph(chain()).to_networkx()

        assert isinstance(exported, nx.DiGraph)
        assert exported.number_of_nodes() == 3
        assert exported[event_id("A")][event_id("B")]["weight"] == 10
        assert exported[event_id("B")][event_id("C")]["weight"] == 20


class TestShortestPath:

    def test_chain_path(self):
        """A -> B -> C with durations 10 and 20 costs 30."""
        result = find_shortest_path(build_event_graph(chain()), event_id("A"), event_id("C"))

        assert result.found
        assert [e.event_name for e in result.path] == ["A", "B", "C"]
        assert result.total_duration_minutes == 30
        assert result.message == PATH_FOUND_MESSAGE

    def test_wrong_direction_has_no_path(self):
        result = find_shortest_path(build_event_graph(chain()), event_id("C"), event_id("A"))

        assert not result.found
        assert result.path == ()
        assert result.total_duration_minutes == 0
        assert result.message == NO_PATH_MESSAGE

    def test_unknown_ids_have_no_path(self):
        graph = build_event_graph(chain())

        assert not find_shortest_path(graph, event_id("A"), event_id("nobody")).found
        assert not find_shortest_path(graph, event_id("nobody"), event_id("A")).found

    def test_sibling_subtree_is_unreachable(self):
        events = chain() + [make_event("D", 0, 5, parent="A")]
        result = find_shortest_path(build_event_graph(events), event_id("D"), event_id("C"))
        assert not result.found

    def test_ids_are_case_insensitive(self):
        result = find_shortest_path(build_event_graph(chain()), event_id("A").upper(), event_id("C"))
        assert result.found

    def test_same_node_is_trivial(self):
        result = find_shortest_path(build_event_graph(chain()), event_id("A"), event_id("A"))

        assert [e.event_name for e in result.path] == ["A"]
        assert result.total_duration_minutes == 0


# =============================================================================
# PROPERTY: agreement with networkx
# =============================================================================

@composite
def forests(draw):
    """Random forests: each event's parent is an earlier event or none."""
    size = draw(st.integers(min_value=2, max_value=25))
    events = []
    for i in range(size):
        parent = draw(st.one_of(st.none(), st.integers(min_value=0, max_value=i - 1))) if i else None
        duration = draw(st.integers(min_value=1, max_value=500))
        events.append(make_event(f"N{i}", 0, duration, parent=f"N{parent}" if parent is not None else None))
    return events


class TestAgainstNetworkx:

    @settings(max_examples=50, deadline=None)
    @given(forests(), st.data())
    def test_costs_match_dijkstra_oracle(self, events, data):
        graph = build_event_graph(events)
        oracle = graph.to_networkx()
        source = data.draw(st.sampled_from(events)).event_id
        target = data.draw(st.sampled_from(events)).event_id

        result = find_shortest_path(graph, source, target)

        if nx.has_path(oracle, source, target):
            assert result.found
            assert result.total_duration_minutes == nx.dijkstra_path_length(oracle, source, target)
            assert result.path[0].event_id == source
            assert result.path[-1].event_id == target
            assert sum(e.duration_minutes for e in result.path[1:]) == result.total_duration_minutes
        else:
            assert not result.found
