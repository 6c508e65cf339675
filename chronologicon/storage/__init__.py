"""
Storage Layer

RESPONSIBILITY: Durable keyed storage for events and ingestion jobs
ALLOWED INPUTS: EventDraft / HistoricalEvent, JobState + JobCommand
OUTPUTS: HistoricalEvent, JobState snapshots

WHAT THIS LAYER MUST NOT DO:
============================
- Parse raw input lines
- Decide job transitions (the state machine does)
- Build graphs or analytics
- Partially commit a batch

Two interchangeable backends exist for each store: in-memory (tests,
small deployments) and SQLite (persistent).
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from .events import EventStore, InMemoryEventStore, SqliteEventStore
from .jobs import JobLedger, InMemoryJobLedger, SqliteJobLedger


EVENTS_DB = "events.db"
JOBS_DB = "jobs.db"


@dataclass
class StorageConfig:
    """Configuration for event and job storage."""
    backend_type: str = "memory"  # "memory" or "sqlite"
    storage_dir: Optional[str] = None

    def __post_init__(self):
        if self.backend_type not in ("memory", "sqlite"):
            raise ValueError(f"Unknown storage backend: {self.backend_type}")
        if self.backend_type == "sqlite" and not self.storage_dir:
            raise ValueError("sqlite storage requires storage_dir")


def create_stores(config: Optional[StorageConfig] = None) -> Tuple[EventStore, JobLedger]:
    """Create the event store and job ledger described by config."""
    config = config or StorageConfig()
    if config.backend_type == "sqlite":
        base = Path(config.storage_dir)
        return SqliteEventStore(base / EVENTS_DB), SqliteJobLedger(base / JOBS_DB)
    return InMemoryEventStore(), InMemoryJobLedger()


__all__ = [
    "StorageConfig", "create_stores",
    "EventStore", "InMemoryEventStore", "SqliteEventStore",
    "JobLedger", "InMemoryJobLedger", "SqliteJobLedger",
]
