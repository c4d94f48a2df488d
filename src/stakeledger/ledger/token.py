# src/stakeledger/ledger/token.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from stakeledger.ledger.types import is_zero_address, normalize_address, payload_int
from stakeledger.runtime.errors import ApplyError

Json = Dict[str, Any]


@dataclass
class TokenApplyError(ApplyError):
    """
    Token ledger failures. The staking engine never rewraps these: callers see
    the same code/reason the token ledger raised (insufficient balance/allowance).
    """

    code: str
    reason: str
    details: Optional[Json] = None


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def ensure_token_root(state: Json) -> Json:
    root = state.get("token")
    if not isinstance(root, dict):
        root = {}
        state["token"] = root
    if not isinstance(root.get("balances"), dict):
        root["balances"] = {}
    if not isinstance(root.get("allowances"), dict):
        root["allowances"] = {}
    root.setdefault("total_supply", 0)
    return root


class StateTokenLedger:
    """ERC20-like account-balance ledger stored under state["token"].

    Shape:
      state["token"] = {
        "balances": {"<addr>": int},
        "allowances": {"<owner>": {"<spender>": int}},
        "total_supply": int,
      }

    transfer_from checks the allowance before the balance, matching the
    usual ERC20 ordering.
    """

    def __init__(self, state: Json) -> None:
        self._root = ensure_token_root(state)

    # ----------------------------
    # Views
    # ----------------------------

    def balance_of(self, account: Any) -> int:
        return _as_int(self._root["balances"].get(normalize_address(account)), 0)

    def allowance(self, owner: Any, spender: Any) -> int:
        per_owner = self._root["allowances"].get(normalize_address(owner))
        if not isinstance(per_owner, dict):
            return 0
        return _as_int(per_owner.get(normalize_address(spender)), 0)

    def total_supply(self) -> int:
        return _as_int(self._root.get("total_supply"), 0)

    # ----------------------------
    # Mutations
    # ----------------------------

    def _check_amount(self, amount: Any) -> int:
        amt = payload_int(amount, -1)
        if amt < 0:
            raise TokenApplyError("token_error", "invalid_amount", {"amount": amount})
        return amt

    def approve(self, owner: Any, spender: Any, amount: Any) -> None:
        o = normalize_address(owner)
        s = normalize_address(spender)
        if is_zero_address(s):
            raise TokenApplyError("token_error", "invalid_spender", {"spender": spender})
        amt = self._check_amount(amount)
        per_owner = self._root["allowances"].get(o)
        if not isinstance(per_owner, dict):
            per_owner = {}
            self._root["allowances"][o] = per_owner
        per_owner[s] = amt

    def transfer(self, sender: Any, to: Any, amount: Any) -> None:
        frm = normalize_address(sender)
        dst = normalize_address(to)
        if is_zero_address(dst):
            raise TokenApplyError("token_error", "invalid_receiver", {"to": to})
        amt = self._check_amount(amount)

        balances = self._root["balances"]
        fb = _as_int(balances.get(frm), 0)
        if fb < amt:
            raise TokenApplyError(
                "token_error",
                "insufficient_balance",
                {"account": frm, "balance": fb, "needed": amt},
            )
        balances[frm] = fb - amt
        balances[dst] = _as_int(balances.get(dst), 0) + amt

    def transfer_from(self, spender: Any, owner: Any, to: Any, amount: Any) -> None:
        sp = normalize_address(spender)
        o = normalize_address(owner)
        amt = self._check_amount(amount)

        allowed = self.allowance(o, sp)
        if allowed < amt:
            raise TokenApplyError(
                "token_error",
                "insufficient_allowance",
                {"owner": o, "spender": sp, "allowance": allowed, "needed": amt},
            )
        self.transfer(o, to, amt)
        if amt:
            self._root["allowances"][o][sp] = allowed - amt

    def mint(self, to: Any, amount: Any) -> None:
        dst = normalize_address(to)
        if is_zero_address(dst):
            raise TokenApplyError("token_error", "invalid_receiver", {"to": to})
        amt = self._check_amount(amount)
        balances = self._root["balances"]
        balances[dst] = _as_int(balances.get(dst), 0) + amt
        self._root["total_supply"] = self.total_supply() + amt


__all__ = ["StateTokenLedger", "TokenApplyError", "ensure_token_root"]
