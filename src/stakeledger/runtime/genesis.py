# src/stakeledger/runtime/genesis.py
from __future__ import annotations

from typing import Any, Dict

from stakeledger.ledger.token import ensure_token_root
from stakeledger.ledger.types import StakingParams, is_zero_address, normalize_address
from stakeledger.runtime.engine_config import EngineConfig
from stakeledger.runtime.errors import ApplyError
from stakeledger.runtime.state_invariants import ensure_state

Json = Dict[str, Any]


def build_genesis_state(cfg: EngineConfig, *, now: int = 0) -> Json:
    """Initial engine state for a fresh deployment.

    Deploy-time checks:
      - staked token address must be non-zero
      - developer wallet must be non-zero
      - governance starts as the deployer
    """
    if is_zero_address(cfg.token_address):
        raise ApplyError("invalid_payload", "invalid_token_address", {"token_address": cfg.token_address})
    if is_zero_address(cfg.developer_wallet):
        raise ApplyError("invalid_payload", "invalid_developer_wallet", {"developer_wallet": cfg.developer_wallet})
    if is_zero_address(cfg.deployer):
        raise ApplyError("invalid_payload", "invalid_deployer", {"deployer": cfg.deployer})

    params = StakingParams(
        governance=normalize_address(cfg.deployer),
        developer_wallet=normalize_address(cfg.developer_wallet),
        staking_rate_30=int(cfg.staking_rate_30),
        staking_rate_60=int(cfg.staking_rate_60),
        staking_rate_90=int(cfg.staking_rate_90),
        early_withdrawal_penalty_percent=int(cfg.early_withdrawal_penalty_percent),
        interest_pool=int(cfg.interest_pool),
        max_stake_30=int(cfg.max_stake_30),
        max_stake_60=int(cfg.max_stake_60),
        max_stake_90=int(cfg.max_stake_90),
    )

    state: Json = {
        "engine_id": cfg.engine_id,
        "time": int(now),
        "engine": {
            "address": normalize_address(cfg.engine_address),
            "token_address": normalize_address(cfg.token_address),
        },
        "params": params.to_json(),
        "whitelist": {normalize_address(a): True for a in cfg.initial_whitelist if not is_zero_address(a)},
        "stakes": {},
        "events": [],
    }
    ensure_token_root(state)
    return ensure_state(state)


__all__ = ["build_genesis_state"]
