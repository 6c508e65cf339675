"""
Backend Facade Tests
====================

Configuration composition and boundary validation of ChronologiconBackend.
"""

import pytest

from chronologicon.contracts.errors import EventNotFoundError, JobNotFoundError, QueryValidationError
from chronologicon.contracts.jobs import JobStatus
from chronologicon.engine import BackendConfig, ChronologiconBackend
from chronologicon.ingestion.controller import IngestionConfig
from chronologicon.storage import InMemoryEventStore, SqliteEventStore, StorageConfig

from tests.fixtures import at, chain_lines, event_id, make_event, write_event_file


class TestBackendConfig:

    def test_defaults(self):
        config = BackendConfig()

        assert config.ingestion == IngestionConfig()
        assert config.storage.backend_type == "memory"

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CHRONO_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("CHRONO_STORAGE_DIR", str(tmp_path))
        monkeypatch.setenv("CHRONO_BATCH_SIZE", "25")
        monkeypatch.setenv("CHRONO_MAX_WORKERS", "2")

        config = BackendConfig.from_env()

        assert config.ingestion.batch_size == 25
        assert config.ingestion.max_workers == 2
        assert config.storage == StorageConfig(backend_type="sqlite", storage_dir=str(tmp_path))

    @pytest.mark.parametrize("kwargs", [{"batch_size": 0}, {"progress_interval": 0}, {"max_workers": 0}])
    def test_invalid_ingestion_config(self, kwargs):
        with pytest.raises(ValueError):
            IngestionConfig(**kwargs)


class TestChronologiconBackend:

    def test_sqlite_backend_end_to_end(self, tmp_path):
        backend = ChronologiconBackend(BackendConfig(
            ingestion=IngestionConfig(batch_size=10),
            storage=StorageConfig(backend_type="sqlite", storage_dir=str(tmp_path / "db"))
        ))
        path = write_event_file(tmp_path, chain_lines(25))

        ticket = backend.start_ingestion(str(path))
        job = ticket.task.join(timeout=30)

        assert isinstance(backend.event_store, SqliteEventStore)
        assert job.status is JobStatus.COMPLETED
        assert job.processed_lines == 25
        assert backend.get_job_status(ticket.job_id) == job
        assert backend.list_jobs(status=JobStatus.COMPLETED)[0].job_id == ticket.job_id
        assert backend.statistics().total_events == 25
        backend.shutdown()

    def test_injected_stores_are_used(self):
        store = InMemoryEventStore()
        backend = ChronologiconBackend(event_store=store)
        assert backend.event_store is store

    def test_unknown_job(self):
        with pytest.raises(JobNotFoundError):
            ChronologiconBackend().get_job_status("ingest-job-0-00000000")

    def test_unknown_timeline_root(self):
        with pytest.raises(EventNotFoundError):
            ChronologiconBackend().build_timeline(event_id("nobody"))

    def test_shortest_path_rejects_same_ids(self):
        backend = ChronologiconBackend()
        backend.event_store.create(make_event("A", 0, 10))

        with pytest.raises(QueryValidationError):
            backend.shortest_path(event_id("A"), event_id("A").upper())

    def test_shortest_path_rejects_malformed_ids(self):
        with pytest.raises(QueryValidationError):
            ChronologiconBackend().shortest_path("x", event_id("A"))

    def test_gap_window_validation(self):
        with pytest.raises(QueryValidationError):
            ChronologiconBackend().find_largest_gap(at(10), at(10))

    def test_analytics_see_current_snapshot(self):
        backend = ChronologiconBackend()
        backend.event_store.bulk_create([make_event("A", 0, 60), make_event("B", 30, 90)])
        assert len(backend.find_overlaps()) == 1

        backend.event_store.create(make_event("C", 50, 55))
        assert len(backend.find_overlaps()) == 3
