# src/stakeledger/runtime/events.py
from __future__ import annotations

from typing import Any, Dict, List

Json = Dict[str, Any]


def _ensure_events(state: Json) -> List[Json]:
    ev = state.get("events")
    if not isinstance(ev, list):
        ev = []
        state["events"] = ev
    return ev


def emit_event(state: Json, event: str, **args: Any) -> Json:
    """Append an observable notification to state["events"].

    Events are part of state, so a rejected tx never leaves one behind.
    `seq` is the 1-based position in the log.
    """
    ev = _ensure_events(state)
    rec = {
        "seq": len(ev) + 1,
        "event": str(event),
        "args": dict(args),
        "time": int(state.get("time", 0) or 0),
    }
    ev.append(rec)
    return rec


__all__ = ["emit_event"]
