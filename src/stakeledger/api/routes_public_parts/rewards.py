from __future__ import annotations

from fastapi import APIRouter, Request

from stakeledger.api.routes_public_parts.common import Json, _view
from stakeledger.api.schemas import StakeRecordIn
from stakeledger.ledger.rewards import split_developer_fee

router = APIRouter()


@router.post("/rewards/preview")
def rewards_preview(body: StakeRecordIn, request: Request) -> Json:
    """Reward a withdrawal of `body` would pay under the current params."""
    gross = _view(request).calculate_rewards(body.model_dump())
    user_reward, developer_fee = split_developer_fee(gross)
    return {
        "ok": True,
        "gross_reward": gross,
        "user_reward": user_reward,
        "developer_fee": developer_fee,
    }
