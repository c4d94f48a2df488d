from __future__ import annotations

from dataclasses import dataclass, field
import copy
from typing import Any, Dict, List

from stakeledger.ledger.rewards import calculate_rewards
from stakeledger.ledger.types import StakeRecord, StakingParams, normalize_address
from stakeledger.runtime.errors import ApplyError


Json = Dict[str, Any]


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _window(offset: Any, limit: Any) -> tuple[int, int]:
    o = _as_int(offset, -1)
    n = _as_int(limit, -1)
    if o < 0 or n < 0:
        raise ApplyError("invalid_payload", "invalid_pagination", {"offset": offset, "limit": limit})
    return o, n


@dataclass(frozen=True, slots=True)
class LedgerView:
    """
    Immutable read-only view over engine state used by queries and the API.
    """

    params: Dict[str, Any] = field(default_factory=dict)
    engine: Dict[str, Any] = field(default_factory=dict)
    whitelist: Dict[str, Any] = field(default_factory=dict)
    stakes: Dict[str, Any] = field(default_factory=dict)
    token: Dict[str, Any] = field(default_factory=dict)
    events: List[Any] = field(default_factory=list)
    time: int = 0

    @classmethod
    def from_ledger(cls, state: Dict[str, Any]) -> "LedgerView":
        def _d(key: str) -> Dict[str, Any]:
            v = state.get(key)
            return copy.deepcopy(v) if isinstance(v, dict) else {}

        ev = state.get("events")
        return cls(
            params=_d("params"),
            engine=_d("engine"),
            whitelist=_d("whitelist"),
            stakes=_d("stakes"),
            token=_d("token"),
            events=copy.deepcopy(ev) if isinstance(ev, list) else [],
            time=_as_int(state.get("time"), 0),
        )

    # ----------------------------
    # Access registry
    # ----------------------------

    def is_whitelisted(self, account: str) -> bool:
        return bool(self.whitelist.get(normalize_address(account), False))

    @property
    def governance(self) -> str:
        return normalize_address(self.params.get("governance"))

    @property
    def developer_wallet(self) -> str:
        return normalize_address(self.params.get("developer_wallet"))

    @property
    def engine_address(self) -> str:
        return normalize_address(self.engine.get("address"))

    # ----------------------------
    # Params
    # ----------------------------

    def staking_params(self) -> StakingParams:
        return StakingParams.from_json(self.params)

    @property
    def staking_rate_30_days(self) -> int:
        return self.staking_params().staking_rate_30

    @property
    def staking_rate_60_days(self) -> int:
        return self.staking_params().staking_rate_60

    @property
    def staking_rate_90_days(self) -> int:
        return self.staking_params().staking_rate_90

    @property
    def interest_pool(self) -> int:
        return self.staking_params().interest_pool

    # ----------------------------
    # Stake ledger
    # ----------------------------

    def get_user_stakes(self, account: str) -> List[StakeRecord]:
        raw = self.stakes.get(normalize_address(account))
        if not isinstance(raw, list):
            return []
        return [StakeRecord.from_json(r) for r in raw if isinstance(r, dict)]

    def get_user_stakes_paginated(self, account: str, offset: int, limit: int) -> List[StakeRecord]:
        """Sub-slice [offset, offset+limit) clipped to what exists; past the end is empty."""
        o, n = _window(offset, limit)
        return self.get_user_stakes(account)[o : o + n]

    def get_total_active_stakes_paginated(self, account: str, offset: int, limit: int) -> int:
        """Count of unclaimed records in the window. Expiry does not matter here."""
        return sum(1 for r in self.get_user_stakes_paginated(account, offset, limit) if not r.claimed)

    def calculate_rewards(self, record: Any) -> int:
        return calculate_rewards(record, self.staking_params())

    # ----------------------------
    # Token ledger
    # ----------------------------

    def balance_of(self, account: str) -> int:
        balances = self.token.get("balances")
        if not isinstance(balances, dict):
            return 0
        return _as_int(balances.get(normalize_address(account)), 0)

    def allowance(self, owner: str, spender: str) -> int:
        allowances = self.token.get("allowances")
        if not isinstance(allowances, dict):
            return 0
        per_owner = allowances.get(normalize_address(owner))
        if not isinstance(per_owner, dict):
            return 0
        return _as_int(per_owner.get(normalize_address(spender)), 0)

    def get_events(self, *, after: int = 0, limit: int = 100) -> List[Json]:
        out: List[Json] = []
        for e in self.events:
            if not isinstance(e, dict):
                continue
            if _as_int(e.get("seq"), 0) <= int(after):
                continue
            out.append(e)
            if len(out) >= max(int(limit), 0):
                break
        return out
