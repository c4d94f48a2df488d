from __future__ import annotations

import time

from fastapi import APIRouter, Request

router = APIRouter()


def _now_ms() -> int:
    return int(time.time() * 1000)


@router.get("/health")
def v1_health(request: Request) -> dict[str, object]:
    # health must never crash
    ex = getattr(request.app.state, "executor", None)
    engine_id = None
    engine_time = None
    tx_count = None
    if ex is not None:
        try:
            st = ex.read_state()
            engine_id = str(st.get("engine_id") or "") or None
            engine_time = int(st.get("time", 0) or 0)
            tx_count = int(st.get("tx_count", 0) or 0)
        except Exception:
            pass

    return {
        "ok": True,
        "service": "stakeledger",
        "version": "v1",
        "ts_ms": _now_ms(),
        "engine_id": engine_id,
        "time": engine_time,
        "tx_count": tx_count,
        "ready": ex is not None,
    }
