# src/stakeledger/runtime/apply/governance.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from stakeledger.ledger.constants import DAY_SECONDS, MAX_EARLY_WITHDRAWAL_PENALTY_PERCENT
from stakeledger.ledger.token import StateTokenLedger
from stakeledger.ledger.types import StakeRecord, is_zero_address, normalize_address, payload_int
from stakeledger.runtime.errors import ApplyError, only_governance
from stakeledger.runtime.events import emit_event
from stakeledger.runtime.tx_envelope import TxEnvelope

Json = Dict[str, Any]


def _d(x: Any) -> Dict[str, Any]:
    return x if isinstance(x, dict) else {}


def _l(x: Any) -> List[Any]:
    return x if isinstance(x, list) else []


def _params(state: Json) -> Json:
    p = state.get("params")
    if not isinstance(p, dict):
        p = {}
        state["params"] = p
    return p


def _apply_developer_wallet_update(state: Json, env: TxEnvelope) -> Json:
    params = _params(state)
    only_governance(params, env.signer)

    raw = _d(env.payload).get("developer_wallet")
    if is_zero_address(raw):
        raise ApplyError("invalid_payload", "invalid_wallet_address", {"developer_wallet": raw})

    old = normalize_address(params.get("developer_wallet"))
    new = normalize_address(raw)
    params["developer_wallet"] = new
    emit_event(state, "DeveloperWalletUpdated", old=old, new=new)
    return {"applied": "DEVELOPER_WALLET_UPDATE", "developer_wallet": new}


def _apply_staking_rates_update(state: Json, env: TxEnvelope) -> Json:
    params = _params(state)
    only_governance(params, env.signer)

    p = _d(env.payload)
    rates = {k: payload_int(p.get(k), 0) for k in ("rate_30", "rate_60", "rate_90")}
    bad = {k: p.get(k) for k, v in rates.items() if v <= 0}
    if bad:
        raise ApplyError("invalid_payload", "invalid_rate", bad)

    params["staking_rate_30"] = rates["rate_30"]
    params["staking_rate_60"] = rates["rate_60"]
    params["staking_rate_90"] = rates["rate_90"]
    emit_event(state, "StakingRatesUpdated", **rates)
    return {"applied": "STAKING_RATES_UPDATE", **rates}


def _apply_early_withdrawal_penalty_update(state: Json, env: TxEnvelope) -> Json:
    params = _params(state)
    only_governance(params, env.signer)

    raw = _d(env.payload).get("percent")
    pct = payload_int(raw, -1)
    if pct < 0 or pct > MAX_EARLY_WITHDRAWAL_PENALTY_PERCENT:
        raise ApplyError(
            "invalid_payload",
            "penalty_out_of_range",
            {"percent": raw, "max": MAX_EARLY_WITHDRAWAL_PENALTY_PERCENT},
        )

    old = payload_int(params.get("early_withdrawal_penalty_percent"), 0)
    params["early_withdrawal_penalty_percent"] = pct
    emit_event(state, "EarlyWithdrawalPenaltyUpdated", old=old, new=pct)
    return {"applied": "EARLY_WITHDRAWAL_PENALTY_UPDATE", "percent": pct}


def _apply_unclaimed_sweep(state: Json, env: TxEnvelope) -> Json:
    """
    Reclaim principal of stakes left unclaimed more than threshold_days past end_time.

    Swept records are closed (claimed + swept) before any transfer so the same
    principal can never be paid out twice. Nothing qualifying is a successful no-op.
    """
    params = _params(state)
    only_governance(params, env.signer)

    raw = _d(env.payload).get("threshold_days")
    threshold_days = payload_int(raw, -1)
    if threshold_days < 0:
        raise ApplyError("invalid_payload", "invalid_threshold", {"threshold_days": raw})

    now = payload_int(state.get("time"), 0)
    cutoff = threshold_days * DAY_SECONDS

    total = 0
    swept: List[Json] = []
    stakes = _d(state.get("stakes"))
    for account in sorted(stakes.keys()):
        seq = _l(stakes.get(account))
        for idx, raw_rec in enumerate(seq):
            if not isinstance(raw_rec, dict):
                continue
            rec = StakeRecord.from_json(raw_rec)
            if rec.claimed or now <= rec.end_time + cutoff:
                continue
            seq[idx] = rec.mark_claimed(swept=True).to_json()
            total += rec.amount
            swept.append({"account": account, "stake_index": idx, "amount": rec.amount})

    governance = normalize_address(params.get("governance"))
    if total > 0:
        emit_event(state, "UnclaimedTokensSwept", governance=governance, amount=total, stakes_swept=len(swept))
        engine = normalize_address(_d(state.get("engine")).get("address"))
        StateTokenLedger(state).transfer(engine, governance, total)

    return {"applied": "UNCLAIMED_SWEEP", "amount": total, "swept": swept}


GOVERNANCE_TX_TYPES: Set[str] = {
    "DEVELOPER_WALLET_UPDATE",
    "STAKING_RATES_UPDATE",
    "EARLY_WITHDRAWAL_PENALTY_UPDATE",
    "UNCLAIMED_SWEEP",
}


def apply_governance(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in GOVERNANCE_TX_TYPES:
        return None

    if t == "DEVELOPER_WALLET_UPDATE":
        return _apply_developer_wallet_update(state, env)
    if t == "STAKING_RATES_UPDATE":
        return _apply_staking_rates_update(state, env)
    if t == "EARLY_WITHDRAWAL_PENALTY_UPDATE":
        return _apply_early_withdrawal_penalty_update(state, env)
    if t == "UNCLAIMED_SWEEP":
        return _apply_unclaimed_sweep(state, env)
    return None


__all__ = ["GOVERNANCE_TX_TYPES", "apply_governance"]
