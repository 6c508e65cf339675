"""
Temporal Layer

Pure state derivation for long-running ingestion jobs.
"""

from .state_machine import JobState, generate_job_id

__all__ = ["JobState", "generate_job_id"]
