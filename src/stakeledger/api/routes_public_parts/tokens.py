from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from stakeledger.api.routes_public_parts.common import Json, _view
from stakeledger.ledger.types import normalize_address

router = APIRouter()


@router.get("/tokens/{address}/balance")
def token_balance(address: str, request: Request, spender: Optional[str] = None) -> Json:
    v = _view(request)
    out: Json = {"ok": True, "address": normalize_address(address), "balance": v.balance_of(address)}
    if spender:
        out["spender"] = normalize_address(spender)
        out["allowance"] = v.allowance(address, spender)
    return out
