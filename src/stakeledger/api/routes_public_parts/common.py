from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request

from stakeledger.api.errors import ApiError
from stakeledger.ledger.state import LedgerView
from stakeledger.ledger.types import StakeRecord

Json = Dict[str, Any]


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _view(request: Request) -> LedgerView:
    return _executor(request).view()


def _int_param(v: Any, default: Optional[int]) -> Optional[int]:
    """Parse an int-ish query param; garbage is a 400, absence is `default`."""
    if v is None:
        return default
    s = str(v).strip()
    if s == "":
        return default
    try:
        return int(s)
    except Exception:
        raise ApiError.bad_request("invalid_payload", "query parameter must be an integer", {"value": s})


def _stake_json(rec: StakeRecord, index: int) -> Json:
    out = rec.to_json()
    out["stake_index"] = int(index)
    return out
