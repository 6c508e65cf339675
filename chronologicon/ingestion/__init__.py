"""
Ingestion Layer

RESPONSIBILITY: Turn a pipe-delimited event file into committed events
ALLOWED INPUTS: A readable file path
OUTPUTS: EventStore batches, JobLedger commands

WHAT THIS LAYER MUST NOT DO:
============================
- Abort a job because of one bad line
- Partially commit a batch
- Mutate job state except through typed commands
"""

from .controller import IngestionConfig, IngestionController, IngestionTask, IngestionTicket
from .parser import parse_line

__all__ = [
    "IngestionConfig", "IngestionController", "IngestionTask", "IngestionTicket",
    "parse_line",
]
