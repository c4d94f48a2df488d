from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from stakeledger.api.routes_public_parts.common import Json, _int_param, _view

router = APIRouter()

_MAX_LIMIT = 1000


@router.get("/events")
def list_events(request: Request, after: Optional[str] = None, limit: Optional[str] = None) -> Json:
    a = max(0, _int_param(after, 0) or 0)
    n = min(max(0, _int_param(limit, 100) or 0), _MAX_LIMIT)
    events = _view(request).get_events(after=a, limit=n)
    return {"ok": True, "events": events, "next_after": events[-1]["seq"] if events else a}
