# src/stakeledger/runtime/apply/__init__.py
"""Domain-specific apply modules.

Each module implements deterministic state transitions for a subset of tx
types and returns None for tx types it does not own.

NOTE: Keep this package import-safe (no imports of domain_dispatch here).
"""

from __future__ import annotations

__all__ = [
    "access",
    "staking",
    "governance",
    "token",
]
