"""
Chronologicon Engine

Streaming ingestion of pipe-delimited historical event files plus
temporal-graph analytics over the ingested events.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Immutable events, job commands, error codes and exceptions
   - Imported by every other layer; imports nothing from them

2. INGESTION LAYER (ingestion/)
   - Responsibility: parse lines, batch drafts, drive one job to completion
   - Outputs: committed events, job ledger commands
   - MUST NOT: decide job transitions itself

3. TEMPORAL LAYER (temporal/)
   - Responsibility: pure job state machine
   - MUST NOT: persist anything

4. STORAGE LAYER (storage/)
   - Responsibility: atomic event batches, per-job atomic ledger updates
   - Backends: in-memory, SQLite

5. CORE ANALYTICS (core/)
   - Responsibility: hierarchy, overlaps, gaps, influence paths
   - MUST NOT: write to any store

6. QUERY LAYER (query/)
   - Responsibility: search, statistics, single-event creation

7. API (api/)
   - FastAPI surface over ChronologiconBackend
"""

from .engine import BackendConfig, ChronologiconBackend

__version__ = "1.0.0"

__all__ = ["BackendConfig", "ChronologiconBackend", "__version__"]
