from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Iterable

Json = Dict[str, Any]


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one JSON object per line. Non-JSON values are rendered with str()."""
    if not logger.isEnabledFor(level):
        return
    payload: Json = {"ts_ms": int(time.time() * 1000), "event": str(event)}
    payload.update(fields)
    logger.log(level, json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str))


def log_receipt(logger: logging.Logger, receipt: Json, events: Iterable[Json] = ()) -> None:
    """Log an executor receipt, then one engine_event line per event it emitted.

    Rejections go out at WARNING so they survive an INFO-suppressed host.
    """
    base = {
        "tx_type": receipt.get("tx_type"),
        "signer": receipt.get("signer"),
        "time": receipt.get("time"),
    }
    if not receipt.get("ok"):
        log_event(
            logger,
            "tx_rejected",
            level=logging.WARNING,
            code=receipt.get("code"),
            reason=receipt.get("reason"),
            **base,
        )
        return

    log_event(logger, "tx_applied", **base)
    for ev in events:
        log_event(logger, "engine_event", seq=ev.get("seq"), name=ev.get("event"), args=ev.get("args"))


__all__ = ["log_event", "log_receipt"]
