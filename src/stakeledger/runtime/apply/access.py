# src/stakeledger/runtime/apply/access.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from stakeledger.ledger.types import is_zero_address, normalize_address
from stakeledger.runtime.errors import ApplyError, only_governance
from stakeledger.runtime.events import emit_event
from stakeledger.runtime.tx_envelope import TxEnvelope

Json = Dict[str, Any]


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _as_list(v: Any) -> List[Any]:
    return v if isinstance(v, list) else []


def _ensure_whitelist(state: Json) -> Json:
    wl = state.get("whitelist")
    if not isinstance(wl, dict):
        wl = {}
        state["whitelist"] = wl
    return wl


def _require_address(v: Any, field: str) -> str:
    if is_zero_address(v):
        raise ApplyError("invalid_payload", "zero_address", {"field": field, "value": v})
    return normalize_address(v)


def _set_whitelisted(state: Json, account: str, whitelisted: bool) -> bool:
    """Returns True when membership actually changed."""
    wl = _ensure_whitelist(state)
    before = bool(wl.get(account, False))
    if before == whitelisted:
        return False
    if whitelisted:
        wl[account] = True
    else:
        wl.pop(account, None)
    emit_event(state, "WhitelistUpdated", account=account, whitelisted=bool(whitelisted))
    return True


def _apply_whitelist_add(state: Json, env: TxEnvelope) -> Json:
    only_governance(state.get("params"), env.signer)
    account = _require_address(_as_dict(env.payload).get("address"), "address")
    changed = _set_whitelisted(state, account, True)
    return {"applied": "WHITELIST_ADD", "address": account, "changed": changed}


def _apply_whitelist_remove(state: Json, env: TxEnvelope) -> Json:
    only_governance(state.get("params"), env.signer)
    account = _require_address(_as_dict(env.payload).get("address"), "address")
    changed = _set_whitelisted(state, account, False)
    return {"applied": "WHITELIST_REMOVE", "address": account, "changed": changed}


def _apply_whitelist_add_many(state: Json, env: TxEnvelope) -> Json:
    only_governance(state.get("params"), env.signer)
    raw = _as_list(_as_dict(env.payload).get("addresses"))

    # Validate everything first; one bad entry rejects the whole batch.
    accounts: List[str] = []
    seen: Set[str] = set()
    for i, a in enumerate(raw):
        acct = _require_address(a, f"addresses[{i}]")
        if acct not in seen:
            seen.add(acct)
            accounts.append(acct)

    added = [a for a in accounts if _set_whitelisted(state, a, True)]
    return {"applied": "WHITELIST_ADD_MANY", "added": added, "count": len(accounts)}


def _apply_governance_update(state: Json, env: TxEnvelope) -> Json:
    params = state.get("params")
    only_governance(params, env.signer)

    new_gov = _require_address(_as_dict(env.payload).get("new_governance"), "new_governance")
    old_gov = normalize_address(_as_dict(params).get("governance"))
    if new_gov == old_gov:
        raise ApplyError("invalid_payload", "governance_unchanged", {"governance": old_gov})

    state["params"]["governance"] = new_gov
    emit_event(state, "GovernanceUpdated", old=old_gov, new=new_gov)
    return {"applied": "GOVERNANCE_UPDATE", "governance": new_gov}


ACCESS_TX_TYPES: Set[str] = {
    "WHITELIST_ADD",
    "WHITELIST_REMOVE",
    "WHITELIST_ADD_MANY",
    "GOVERNANCE_UPDATE",
}


def apply_access(state: Json, env: TxEnvelope) -> Optional[Json]:
    """
    Returns:
      - dict: applied result
      - None: tx_type not in access domain
    """
    t = str(env.tx_type or "").strip().upper()
    if t not in ACCESS_TX_TYPES:
        return None

    if t == "WHITELIST_ADD":
        return _apply_whitelist_add(state, env)
    if t == "WHITELIST_REMOVE":
        return _apply_whitelist_remove(state, env)
    if t == "WHITELIST_ADD_MANY":
        return _apply_whitelist_add_many(state, env)
    if t == "GOVERNANCE_UPDATE":
        return _apply_governance_update(state, env)
    return None


__all__ = ["ACCESS_TX_TYPES", "apply_access"]
