from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from stakeledger.api.routes_public_parts.common import Json, _int_param, _stake_json, _view
from stakeledger.ledger.types import normalize_address

router = APIRouter()


@router.get("/stakes/{address}")
def get_stakes(
    address: str,
    request: Request,
    offset: Optional[str] = None,
    limit: Optional[str] = None,
) -> Json:
    """All stake records of `address`, or the [offset, offset+limit) window when either is given."""
    v = _view(request)
    o = _int_param(offset, None)
    n = _int_param(limit, None)

    if o is None and n is None:
        records = v.get_user_stakes(address)
        start = 0
    else:
        start = o if o is not None else 0
        total = len(v.get_user_stakes(address))
        records = v.get_user_stakes_paginated(address, start, n if n is not None else total)

    return {
        "ok": True,
        "address": normalize_address(address),
        "stakes": [_stake_json(r, start + i) for i, r in enumerate(records)],
    }


@router.get("/stakes/{address}/active")
def get_active_stakes(
    address: str,
    request: Request,
    offset: Optional[str] = None,
    limit: Optional[str] = None,
) -> Json:
    v = _view(request)
    o = _int_param(offset, 0)
    n = _int_param(limit, None)
    if n is None:
        n = len(v.get_user_stakes(address))
    return {
        "ok": True,
        "address": normalize_address(address),
        "active": v.get_total_active_stakes_paginated(address, o, n),
    }
