# src/stakeledger/runtime/apply/token.py
from __future__ import annotations

from typing import Any, Dict, Optional, Set

from stakeledger.ledger.token import StateTokenLedger, TokenApplyError
from stakeledger.ledger.types import normalize_address
from stakeledger.runtime.tx_envelope import TxEnvelope

Json = Dict[str, Any]


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _require_system_env(env: TxEnvelope) -> None:
    if bool(getattr(env, "system", False)) or str(getattr(env, "signer", "")).strip() == "SYSTEM":
        return
    raise TokenApplyError("forbidden", "system_tx_required", {"tx_type": env.tx_type, "signer": env.signer})


def _apply_token_approve(state: Json, env: TxEnvelope) -> Json:
    p = _as_dict(env.payload)
    owner = normalize_address(env.signer)
    spender = normalize_address(p.get("spender"))
    StateTokenLedger(state).approve(owner, spender, p.get("amount"))
    return {"applied": "TOKEN_APPROVE", "owner": owner, "spender": spender, "amount": p.get("amount")}


def _apply_token_transfer(state: Json, env: TxEnvelope) -> Json:
    p = _as_dict(env.payload)
    sender = normalize_address(env.signer)
    to = normalize_address(p.get("to"))
    StateTokenLedger(state).transfer(sender, to, p.get("amount"))
    return {"applied": "TOKEN_TRANSFER", "from": sender, "to": to, "amount": p.get("amount")}


def _apply_token_mint(state: Json, env: TxEnvelope) -> Json:
    _require_system_env(env)
    p = _as_dict(env.payload)
    to = normalize_address(p.get("to"))
    StateTokenLedger(state).mint(to, p.get("amount"))
    return {"applied": "TOKEN_MINT", "to": to, "amount": p.get("amount")}


TOKEN_TX_TYPES: Set[str] = {"TOKEN_APPROVE", "TOKEN_TRANSFER", "TOKEN_MINT"}


def apply_token(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in TOKEN_TX_TYPES:
        return None

    if t == "TOKEN_APPROVE":
        return _apply_token_approve(state, env)
    if t == "TOKEN_TRANSFER":
        return _apply_token_transfer(state, env)
    if t == "TOKEN_MINT":
        return _apply_token_mint(state, env)
    return None


__all__ = ["TOKEN_TX_TYPES", "apply_token"]
