# src/stakeledger/ledger/rewards.py
from __future__ import annotations

from typing import Any, Tuple

from stakeledger.ledger.constants import (
    BPS_DENOMINATOR,
    DEVELOPER_FEE_PERCENT,
    MONTH_SECONDS,
    POOL_SHARE_PERCENT,
    STAKING_DURATIONS,
)
from stakeledger.ledger.types import StakeRecord, StakingParams, payload_int
from stakeledger.runtime.errors import ApplyError


def require_staking_period(duration: Any) -> int:
    d = payload_int(duration, -1)
    if d not in STAKING_DURATIONS:
        raise ApplyError("invalid_payload", "invalid_staking_period", {"duration": duration})
    return d


def compounded_interest(amount: int, rate_bps: int, months: int) -> int:
    """Interest earned by `amount` compounding monthly at `rate_bps` for `months`.

    Integer basis-point arithmetic:
        total = amount * (10000 + rate)^n // 10000^n
    """
    n = int(months)
    if n <= 0 or int(amount) <= 0:
        return 0
    total = int(amount) * (BPS_DENOMINATOR + int(rate_bps)) ** n // BPS_DENOMINATOR**n
    return total - int(amount)


def pool_share(interest_pool: int, duration: int) -> int:
    """Ceiling of rewards payable to one stake in the given bucket."""
    d = require_staking_period(duration)
    return int(interest_pool) * int(POOL_SHARE_PERCENT[d]) // 100


def calculate_rewards(record: Any, params: Any) -> int:
    """Gross reward for a stake record under the current params.

    Pure: callable on hypothetical records to preview a withdrawal.
    """
    rec = StakeRecord.from_json(record)
    p = params if isinstance(params, StakingParams) else StakingParams.from_json(params)

    d = require_staking_period(rec.duration)
    months = d // MONTH_SECONDS
    interest = compounded_interest(rec.amount, p.rate_for(d), months)
    return min(interest, pool_share(p.interest_pool, d))


def split_developer_fee(gross_reward: int) -> Tuple[int, int]:
    """Return (user_reward, developer_fee)."""
    g = max(int(gross_reward), 0)
    fee = g * DEVELOPER_FEE_PERCENT // 100
    return g - fee, fee


def early_withdrawal_penalty(amount: int, penalty_percent: int) -> Tuple[int, int]:
    """Return (penalty, amount_returned)."""
    a = int(amount)
    penalty = a * int(penalty_percent) // 100
    return penalty, a - penalty


__all__ = [
    "calculate_rewards",
    "compounded_interest",
    "early_withdrawal_penalty",
    "pool_share",
    "require_staking_period",
    "split_developer_fee",
]
