"""
Query Service Tests
===================

Search delegation, single-event creation and aggregate statistics.
"""

import pytest

from chronologicon.contracts.errors import ConstraintViolation, EventNotFoundError
from chronologicon.contracts.events import SearchFilters
from chronologicon.query import EventQueryService
from chronologicon.storage import InMemoryEventStore

from tests.fixtures import at, event_id, make_draft, make_event


@pytest.fixture
def service():
    return EventQueryService(InMemoryEventStore())


class TestEventQueryService:

    def test_create_and_get(self, service):
        created = service.create_event(make_draft("A", 0, 30))

        assert service.get_event(event_id("A")) == created

    def test_create_rejects_missing_parent(self, service):
        with pytest.raises(ConstraintViolation):
            service.create_event(make_draft("Child", 0, 5, parent="ghost"))

    def test_get_unknown(self, service):
        with pytest.raises(EventNotFoundError):
            service.get_event(event_id("nobody"))

    def test_search(self, service):
        service.create_event(make_draft("Alpha", 0, 5))
        service.create_event(make_draft("Beta", 10, 15))

        page = service.search(SearchFilters(name="bet"))
        assert [e.event_name for e in page.events] == ["Beta"]


class TestStatistics:

    def test_empty_store(self, service):
        stats = service.statistics()

        assert stats.total_events == 0
        assert stats.earliest_event is None
        assert stats.max_hierarchy_depth == 0
        assert stats.is_forest

    def test_aggregates(self):
        store = InMemoryEventStore()
        store.bulk_create([
            make_event("Root", 0, 100),
            make_event("Child", 10, 40, parent="Root"),
            make_event("Grandchild", 15, 20, parent="Child"),
            make_event("Other", 200, 260),
        ])

        stats = EventQueryService(store).statistics()

        assert stats.total_events == 4
        assert stats.root_events == 2
        assert stats.child_events == 2
        assert stats.longest_event_duration == 100
        assert stats.shortest_event_duration == 5
        assert stats.avg_duration_minutes == 49     # (100 + 30 + 5 + 60) / 4 = 48.75
        assert stats.earliest_event == at(0)
        assert stats.latest_event == at(260)
        assert stats.max_hierarchy_depth == 2
        assert stats.is_forest
