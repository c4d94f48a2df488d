# src/stakeledger/runtime/apply/staking.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from stakeledger.ledger.rewards import (
    calculate_rewards,
    early_withdrawal_penalty,
    require_staking_period,
    split_developer_fee,
)
from stakeledger.ledger.token import StateTokenLedger
from stakeledger.ledger.types import StakeRecord, StakingParams, normalize_address, payload_int
from stakeledger.runtime.errors import ApplyError
from stakeledger.runtime.events import emit_event
from stakeledger.runtime.tx_envelope import TxEnvelope

Json = Dict[str, Any]


@dataclass
class StakingApplyError(ApplyError):
    """
    Staking domain errors MUST be ApplyError so dispatch re-raises them unchanged
    and the executor records a rejection receipt with the same code/reason.
    """

    code: str
    reason: str
    details: Optional[Json] = None


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _now(state: Json) -> int:
    return payload_int(state.get("time"), 0)


def _engine_address(state: Json) -> str:
    addr = normalize_address(_as_dict(state.get("engine")).get("address"))
    if not addr:
        raise StakingApplyError("invalid_state", "engine_address_missing", {})
    return addr


def _account_stakes(state: Json, account: str) -> List[Json]:
    root = state.get("stakes")
    if not isinstance(root, dict):
        root = {}
        state["stakes"] = root
    seq = root.get(account)
    if not isinstance(seq, list):
        seq = []
        root[account] = seq
    return seq


def _load_owned_stake(state: Json, account: str, stake_index: Any) -> Tuple[List[Json], int, StakeRecord]:
    """Resolve a caller-relative index.

    Out-of-range and "belongs to someone else" are indistinguishable on purpose:
    both surface as invalid_stake_index.
    """
    root = _as_dict(state.get("stakes"))
    seq = root.get(account)
    idx = payload_int(stake_index, -1)
    if not isinstance(seq, list) or idx < 0 or idx >= len(seq) or not isinstance(seq[idx], dict):
        raise StakingApplyError("not_found", "invalid_stake_index", {"stake_index": stake_index})

    rec = StakeRecord.from_json(seq[idx])
    if rec.claimed:
        raise StakingApplyError("invalid_state", "stake_already_claimed", {"stake_index": idx})
    return seq, idx, rec


def _apply_stake(state: Json, env: TxEnvelope) -> Json:
    account = normalize_address(env.signer)
    payload = _as_dict(env.payload)

    if not bool(_as_dict(state.get("whitelist")).get(account, False)):
        raise StakingApplyError("forbidden", "not_whitelisted", {"account": account})

    amount = payload_int(payload.get("amount"), 0)
    if amount <= 0:
        raise StakingApplyError("invalid_payload", "amount_must_be_positive", {"amount": payload.get("amount")})

    duration = require_staking_period(payload.get("duration"))

    params = StakingParams.from_json(state.get("params"))
    ceiling = params.max_stake_for(duration)
    if amount > ceiling:
        raise StakingApplyError(
            "invalid_payload",
            "exceeds_staking_limit",
            {"amount": amount, "max_stake": ceiling, "duration": duration},
        )

    engine = _engine_address(state)

    # Pull principal first: token errors (allowance/balance) surface unchanged
    # and nothing else has been touched yet.
    StateTokenLedger(state).transfer_from(engine, account, engine, amount)

    rec = StakeRecord.open(amount=amount, duration=duration, now=_now(state))
    seq = _account_stakes(state, account)
    seq.append(rec.to_json())
    index = len(seq) - 1

    emit_event(state, "Staked", account=account, amount=amount, duration=duration)
    return {"applied": "STAKE", "stake_index": index, "stake": rec.to_json()}


def _apply_withdraw(state: Json, env: TxEnvelope) -> Json:
    account = normalize_address(env.signer)
    seq, idx, rec = _load_owned_stake(state, account, _as_dict(env.payload).get("stake_index"))

    now = _now(state)
    if not rec.is_unlocked(now):
        raise StakingApplyError(
            "invalid_state",
            "stake_still_locked",
            {"stake_index": idx, "end_time": rec.end_time, "now": now},
        )

    params = StakingParams.from_json(state.get("params"))
    gross = calculate_rewards(rec, params)
    user_reward, developer_fee = split_developer_fee(gross)
    developer_wallet = params.developer_wallet

    # State first: the token ledger is treated as untrusted and may re-enter.
    seq[idx] = rec.mark_claimed().to_json()
    emit_event(state, "Withdrawn", account=account, amount=rec.amount, user_reward=user_reward)
    emit_event(state, "DeveloperFeesPaid", developer_wallet=developer_wallet, fee=developer_fee)

    token = StateTokenLedger(state)
    engine = _engine_address(state)
    token.transfer(engine, account, rec.amount + user_reward)
    if developer_fee > 0:
        token.transfer(engine, developer_wallet, developer_fee)

    return {
        "applied": "WITHDRAW",
        "stake_index": idx,
        "amount": rec.amount,
        "gross_reward": gross,
        "user_reward": user_reward,
        "developer_fee": developer_fee,
    }


def _apply_early_withdraw(state: Json, env: TxEnvelope) -> Json:
    account = normalize_address(env.signer)
    seq, idx, rec = _load_owned_stake(state, account, _as_dict(env.payload).get("stake_index"))

    now = _now(state)
    if rec.is_unlocked(now):
        raise StakingApplyError(
            "invalid_state",
            "stake_period_ended",
            {"stake_index": idx, "end_time": rec.end_time, "now": now},
        )

    params = StakingParams.from_json(state.get("params"))
    penalty, returned = early_withdrawal_penalty(rec.amount, params.early_withdrawal_penalty_percent)

    seq[idx] = rec.mark_claimed().to_json()
    emit_event(
        state,
        "EarlyWithdrawn",
        account=account,
        amount=rec.amount,
        penalty=penalty,
        amount_returned=returned,
    )

    token = StateTokenLedger(state)
    engine = _engine_address(state)
    if returned > 0:
        token.transfer(engine, account, returned)
    if penalty > 0:
        token.transfer(engine, params.developer_wallet, penalty)

    return {
        "applied": "EARLY_WITHDRAW",
        "stake_index": idx,
        "amount": rec.amount,
        "penalty": penalty,
        "amount_returned": returned,
    }


STAKING_TX_TYPES: Set[str] = {"STAKE", "WITHDRAW", "EARLY_WITHDRAW"}


def apply_staking(state: Json, env: TxEnvelope) -> Optional[Json]:
    """
    Returns:
      - dict: applied result
      - None: tx_type not in staking domain
    """
    t = str(env.tx_type or "").strip().upper()
    if t not in STAKING_TX_TYPES:
        return None

    if t == "STAKE":
        return _apply_stake(state, env)
    if t == "WITHDRAW":
        return _apply_withdraw(state, env)
    if t == "EARLY_WITHDRAW":
        return _apply_early_withdraw(state, env)
    return None


__all__ = ["STAKING_TX_TYPES", "StakingApplyError", "apply_staking"]
