from __future__ import annotations

from fastapi import APIRouter, Request

from stakeledger.api.routes_public_parts.common import Json, _view
from stakeledger.ledger.types import normalize_address

router = APIRouter()


@router.get("/params")
def get_params(request: Request) -> Json:
    v = _view(request)
    p = v.staking_params()
    return {
        "ok": True,
        "governance": p.governance,
        "developer_wallet": p.developer_wallet,
        "engine_address": v.engine_address,
        "token_address": normalize_address(v.engine.get("token_address")),
        "staking_rate_30_days": p.staking_rate_30,
        "staking_rate_60_days": p.staking_rate_60,
        "staking_rate_90_days": p.staking_rate_90,
        "early_withdrawal_penalty_percent": p.early_withdrawal_penalty_percent,
        "interest_pool": p.interest_pool,
        "max_stake_30_days": p.max_stake_30,
        "max_stake_60_days": p.max_stake_60,
        "max_stake_90_days": p.max_stake_90,
    }


@router.get("/whitelist/{address}")
def get_whitelist(address: str, request: Request) -> Json:
    v = _view(request)
    return {"ok": True, "address": normalize_address(address), "whitelisted": v.is_whitelisted(address)}
