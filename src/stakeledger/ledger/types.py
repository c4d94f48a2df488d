# src/stakeledger/ledger/types.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict

from stakeledger.ledger.constants import (
    DEFAULT_EARLY_WITHDRAWAL_PENALTY_PERCENT,
    DEFAULT_INTEREST_POOL,
    DEFAULT_STAKING_RATE_30,
    DEFAULT_STAKING_RATE_60,
    DEFAULT_STAKING_RATE_90,
    DURATION_30_DAYS,
    DURATION_60_DAYS,
    DURATION_90_DAYS,
    MAX_STAKE_30,
    MAX_STAKE_60,
    MAX_STAKE_90,
    ZERO_ADDRESS,
)

Json = Dict[str, Any]


def normalize_address(v: Any) -> str:
    """Canonical address form: stripped, and lowercased for 0x-hex addresses."""
    if v is None:
        return ""
    s = str(v).strip()
    if s[:2].lower() == "0x":
        return s.lower()
    return s


def is_zero_address(v: Any) -> bool:
    a = normalize_address(v)
    return not a or a == ZERO_ADDRESS


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def payload_int(v: Any, default: int) -> int:
    """Integer from a tx payload value, or `default` when it is not integral.

    Accepts ints, integral floats and decimal strings. Bools, fractional
    floats and anything else fall back to `default` so callers reject them
    instead of truncating.
    """
    if isinstance(v, bool):
        return int(default)
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v) if v.is_integer() else int(default)
    if isinstance(v, str):
        try:
            return int(v.strip())
        except ValueError:
            return int(default)
    return int(default)


@dataclass(frozen=True, slots=True)
class StakeRecord:
    """A single time-locked deposit.

    amount/start_time/end_time/duration are fixed at creation; only `claimed`
    (and `swept`, for governance reclamation) ever change, false -> true.
    """

    amount: int
    start_time: int
    end_time: int
    duration: int
    claimed: bool = False
    swept: bool = False

    @classmethod
    def open(cls, *, amount: int, duration: int, now: int) -> "StakeRecord":
        return cls(
            amount=int(amount),
            start_time=int(now),
            end_time=int(now) + int(duration),
            duration=int(duration),
        )

    @classmethod
    def from_json(cls, j: Any) -> "StakeRecord":
        if isinstance(j, StakeRecord):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        start = _as_int(j.get("start_time"), 0)
        duration = _as_int(j.get("duration"), 0)
        end = j.get("end_time")
        return cls(
            amount=_as_int(j.get("amount"), 0),
            start_time=start,
            end_time=_as_int(end, start + duration) if end is not None else start + duration,
            duration=duration,
            claimed=bool(j.get("claimed", False)),
            swept=bool(j.get("swept", False)),
        )

    def to_json(self) -> Json:
        return {
            "amount": int(self.amount),
            "start_time": int(self.start_time),
            "end_time": int(self.end_time),
            "duration": int(self.duration),
            "claimed": bool(self.claimed),
            "swept": bool(self.swept),
        }

    def is_unlocked(self, now: int) -> bool:
        return int(now) >= int(self.end_time)

    def mark_claimed(self, *, swept: bool = False) -> "StakeRecord":
        return replace(self, claimed=True, swept=bool(swept))


@dataclass(frozen=True, slots=True)
class StakingParams:
    """Governance-controlled configuration block (state["params"])."""

    governance: str
    developer_wallet: str
    staking_rate_30: int = DEFAULT_STAKING_RATE_30
    staking_rate_60: int = DEFAULT_STAKING_RATE_60
    staking_rate_90: int = DEFAULT_STAKING_RATE_90
    early_withdrawal_penalty_percent: int = DEFAULT_EARLY_WITHDRAWAL_PENALTY_PERCENT
    interest_pool: int = DEFAULT_INTEREST_POOL
    max_stake_30: int = MAX_STAKE_30
    max_stake_60: int = MAX_STAKE_60
    max_stake_90: int = MAX_STAKE_90

    @classmethod
    def from_json(cls, j: Any) -> "StakingParams":
        p = j if isinstance(j, dict) else {}
        return cls(
            governance=normalize_address(p.get("governance")),
            developer_wallet=normalize_address(p.get("developer_wallet")),
            staking_rate_30=_as_int(p.get("staking_rate_30"), DEFAULT_STAKING_RATE_30),
            staking_rate_60=_as_int(p.get("staking_rate_60"), DEFAULT_STAKING_RATE_60),
            staking_rate_90=_as_int(p.get("staking_rate_90"), DEFAULT_STAKING_RATE_90),
            early_withdrawal_penalty_percent=_as_int(
                p.get("early_withdrawal_penalty_percent"), DEFAULT_EARLY_WITHDRAWAL_PENALTY_PERCENT
            ),
            interest_pool=_as_int(p.get("interest_pool"), DEFAULT_INTEREST_POOL),
            max_stake_30=_as_int(p.get("max_stake_30"), MAX_STAKE_30),
            max_stake_60=_as_int(p.get("max_stake_60"), MAX_STAKE_60),
            max_stake_90=_as_int(p.get("max_stake_90"), MAX_STAKE_90),
        )

    def to_json(self) -> Json:
        return {
            "governance": self.governance,
            "developer_wallet": self.developer_wallet,
            "staking_rate_30": int(self.staking_rate_30),
            "staking_rate_60": int(self.staking_rate_60),
            "staking_rate_90": int(self.staking_rate_90),
            "early_withdrawal_penalty_percent": int(self.early_withdrawal_penalty_percent),
            "interest_pool": int(self.interest_pool),
            "max_stake_30": int(self.max_stake_30),
            "max_stake_60": int(self.max_stake_60),
            "max_stake_90": int(self.max_stake_90),
        }

    def rate_for(self, duration: int) -> int:
        d = int(duration)
        if d == DURATION_30_DAYS:
            return int(self.staking_rate_30)
        if d == DURATION_60_DAYS:
            return int(self.staking_rate_60)
        if d == DURATION_90_DAYS:
            return int(self.staking_rate_90)
        raise KeyError(d)

    def max_stake_for(self, duration: int) -> int:
        d = int(duration)
        if d == DURATION_30_DAYS:
            return int(self.max_stake_30)
        if d == DURATION_60_DAYS:
            return int(self.max_stake_60)
        if d == DURATION_90_DAYS:
            return int(self.max_stake_90)
        raise KeyError(d)


__all__ = ["Json", "StakeRecord", "StakingParams", "is_zero_address", "normalize_address"]
