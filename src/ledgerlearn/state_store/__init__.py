"""
State Store (SQLite-based).

Lightweight persistent DB for:
- Supplier learning profiles and aliases
- Transaction patterns
- Correction audit trail
- Assembled document jobs
- LLM response cache

Profile and pattern writes are optimistic (versioned rows).
"""

from .sqlite_store import ConcurrentUpdateError, StateStore, utc_now

__all__ = [
    "ConcurrentUpdateError",
    "StateStore",
    "utc_now",
]
