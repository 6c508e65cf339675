"""
Engine Orchestration Module

Unified interface over ingestion, storage, analytics and queries.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. Stores are injected; analytics never hold state between calls
3. Boundary validation (same-id paths, inverted windows) happens here
4. Every analytics call reads a fresh snapshot from the event store
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
import logging
import os

from .contracts.base import TimeRange, is_valid_uuid
from .contracts.errors import QueryValidationError
from .contracts.events import EventDraft, HistoricalEvent, SearchFilters, SearchPage, TimelineNode
from .contracts.jobs import JobStatus
from .core.graph import build_event_graph
from .core.intervals import GapReport, OverlapPair, find_largest_gap, find_overlaps
from .core.paths import PathResult, find_shortest_path
from .core.timeline import build_timeline
from .ingestion.controller import IngestionConfig, IngestionController, IngestionTicket
from .query import EventQueryService, EventStatistics
from .storage import EventStore, JobLedger, StorageConfig, create_stores
from .temporal.state_machine import JobState

logger = logging.getLogger(__name__)


@dataclass
class BackendConfig:
    """Unified configuration for the entire backend."""
    ingestion: IngestionConfig = None
    storage: StorageConfig = None

    def __post_init__(self):
        self.ingestion = self.ingestion or IngestionConfig()
        self.storage = self.storage or StorageConfig()

    @classmethod
    def from_env(cls) -> BackendConfig:
        """
        Build configuration from environment variables.

        CHRONO_STORAGE_BACKEND  memory | sqlite (default memory)
        CHRONO_STORAGE_DIR      directory for the sqlite databases
        CHRONO_BATCH_SIZE       events per atomic commit (default 100)
        CHRONO_MAX_WORKERS      concurrent ingestion jobs (default 4)
        """
        defaults = IngestionConfig()
        return cls(
            ingestion=IngestionConfig(
                batch_size=int(os.environ.get("CHRONO_BATCH_SIZE", defaults.batch_size)),
                progress_interval=defaults.progress_interval,
                max_workers=int(os.environ.get("CHRONO_MAX_WORKERS", defaults.max_workers)),
                encoding=defaults.encoding
            ),
            storage=StorageConfig(
                backend_type=os.environ.get("CHRONO_STORAGE_BACKEND", "memory"),
                storage_dir=os.environ.get("CHRONO_STORAGE_DIR")
            )
        )


class ChronologiconBackend:
    """
    Unified backend for the Chronologicon engine.

    LAYER FLOW:
    ===========
    1. Ingestion: file -> parser -> atomic batches -> EventStore
    2. Jobs: every progress change goes through JobLedger.apply()
    3. Analytics: EventStore snapshot -> graph / intervals / timeline
    4. Query: search, statistics and single-event writes
    """

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        event_store: Optional[EventStore] = None,
        job_ledger: Optional[JobLedger] = None
    ):
        self._config = config or BackendConfig()

        if event_store is None or job_ledger is None:
            default_store, default_ledger = create_stores(self._config.storage)
            event_store = event_store or default_store
            job_ledger = job_ledger or default_ledger

        self._store = event_store
        self._ledger = job_ledger
        self._ingestion = IngestionController(self._store, self._ledger, self._config.ingestion)
        self._query = EventQueryService(self._store)

        logger.info("Backend initialized with %s storage", self._config.storage.backend_type)

    @property
    def event_store(self) -> EventStore:
        return self._store

    @property
    def job_ledger(self) -> JobLedger:
        return self._ledger

    # =========================================================================
    # INGESTION INTERFACE
    # =========================================================================

    def start_ingestion(self, file_path: str) -> IngestionTicket:
        """Raises IngestionStartError when the file cannot be read."""
        return self._ingestion.start_ingestion(file_path)

    def get_job_status(self, job_id: str) -> JobState:
        return self._ingestion.get_job_status(job_id)

    def list_jobs(self, status: Optional[JobStatus] = None, limit: Optional[int] = None) -> List[JobState]:
        return self._ingestion.list_jobs(status=status, limit=limit)

    # =========================================================================
    # ANALYTICS INTERFACE
    # =========================================================================

    def build_timeline(self, root_event_id: str) -> TimelineNode:
        """Raises EventNotFoundError for an unknown root."""
        return build_timeline(self._store, root_event_id)

    def find_overlaps(self) -> List[OverlapPair]:
        return find_overlaps(self._store.all_events())

    def find_largest_gap(self, window_start: datetime, window_end: datetime) -> GapReport:
        try:
            window = TimeRange(window_start, window_end)
        except ValueError as e:
            raise QueryValidationError("startDate must be before endDate") from e
        return find_largest_gap(self._store.all_events(), window.start, window.end)

    def shortest_path(self, source_event_id: str, target_event_id: str) -> PathResult:
        """Raises QueryValidationError for malformed or identical ids."""
        for value in (source_event_id, target_event_id):
            if not is_valid_uuid(value):
                raise QueryValidationError(f"Invalid UUID format: {value!r}")
        if source_event_id.lower() == target_event_id.lower():
            raise QueryValidationError("Source and target event IDs cannot be the same")

        graph = build_event_graph(self._store.all_events())
        return find_shortest_path(graph, source_event_id, target_event_id)

    # =========================================================================
    # QUERY INTERFACE
    # =========================================================================

    def search_events(self, filters: SearchFilters) -> SearchPage:
        return self._query.search(filters)

    def create_event(self, draft: EventDraft) -> HistoricalEvent:
        return self._query.create_event(draft)

    def statistics(self) -> EventStatistics:
        return self._query.statistics()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def shutdown(self, wait: bool = True):
        """Stop accepting jobs. With wait=True, running jobs finish first."""
        self._ingestion.shutdown(wait=wait)
        logger.info("Backend shut down")
