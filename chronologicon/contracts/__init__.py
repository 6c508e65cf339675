"""
Contracts Module

Types shared between layers. All inter-layer communication uses these
contracts; no layer imports implementation details from another.

DESIGN PRINCIPLES:
==================
1. All contract types are immutable (frozen dataclasses)
2. Tolerated failures are data (Error, LineError, JobError)
3. Failures the caller must handle are ChronologiconError subclasses
4. All timestamps are UTC-aware and never mutated
"""
