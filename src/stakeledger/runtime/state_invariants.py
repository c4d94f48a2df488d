# src/stakeledger/runtime/state_invariants.py
from __future__ import annotations

"""State invariants / normalization helpers.

Engine state is a nested JSON-like dict mutated deterministically by apply_* modules.
This module is the single place that:

  - validates the state is dict-like
  - ensures core top-level containers exist (so domain modules can rely on them)

Domain-specific shapes (token balances, stake records) stay the responsibility
of the owning module.
"""

from collections.abc import MutableMapping
from typing import Any, Dict

Json = Dict[str, Any]

_CORE_DICTS = ("params", "engine", "whitelist", "stakes")


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains core keys.

    Returns the (possibly mutated) dict.

    Raises:
        TypeError: if st is not a MutableMapping
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    for key in _CORE_DICTS:
        v = st.get(key)
        if v is None:
            st[key] = {}
        elif not isinstance(v, dict):
            # Fail closed: do not attempt to coerce arbitrary types.
            raise TypeError(f"state[{key!r}] must be dict, got {type(v)}")

    ev = st.get("events")
    if ev is None:
        st["events"] = []
    elif not isinstance(ev, list):
        raise TypeError(f"state['events'] must be list, got {type(ev)}")

    st.setdefault("time", 0)
    return st  # type: ignore[return-value]


__all__ = ["ensure_state"]
