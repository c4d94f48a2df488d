from __future__ import annotations

import copy
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from stakeledger.ledger.state import LedgerView
from stakeledger.ledger.types import StakeRecord
from stakeledger.runtime.domain_apply import ApplyError, apply_tx_atomic
from stakeledger.runtime.engine_config import EngineConfig, load_engine_config, validate_engine_config
from stakeledger.runtime.engine_logging import log_receipt
from stakeledger.runtime.genesis import build_genesis_state
from stakeledger.runtime.metrics import observe_applied, observe_rejected, set_ledger_gauges
from stakeledger.runtime.sqlite_db import SqliteDB, SqliteLedgerStore, SqliteReceiptStore
from stakeledger.runtime.tx_envelope import TxEnvelope

Json = Dict[str, Any]
Clock = Callable[[], int]

log = logging.getLogger("stakeledger.executor")


def _wall_clock() -> int:
    return int(time.time())


def _safe_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


class ExecutorError(RuntimeError):
    pass


class StakingExecutor:
    """Single-writer host for the staking engine.

    Every mutation goes through submit(): the clock is stamped into state, the
    envelope is applied atomically, and the result is persisted (when a
    db_path is given) together with a receipt.
    """

    def __init__(
        self,
        cfg: Optional[EngineConfig] = None,
        *,
        db_path: Optional[str] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.cfg = cfg if cfg is not None else load_engine_config()
        validate_engine_config(self.cfg)

        self._clock: Clock = clock or _wall_clock
        self._lock = threading.Lock()

        self.db_path = str(db_path) if db_path else ""
        self._ledger_store: Optional[SqliteLedgerStore] = None
        self._receipt_store: Optional[SqliteReceiptStore] = None
        self._mem_receipts: List[Json] = []

        if self.db_path:
            db = SqliteDB(path=self.db_path)
            db.init_schema()
            self._ledger_store = SqliteLedgerStore(db=db)
            self._receipt_store = SqliteReceiptStore(db=db)

        head = self._ledger_store.head() if self._ledger_store is not None else None
        if head is not None:
            if head["engine_id"] and head["engine_id"] != self.cfg.engine_id:
                raise ExecutorError(
                    f"engine_id mismatch: db={head['engine_id']!r} config={self.cfg.engine_id!r}. Refuse to start."
                )
            self.state = self._ledger_store.read()
        else:
            self.state = build_genesis_state(self.cfg, now=int(self._clock()))
            self.state.setdefault("tx_count", 0)
            if self._ledger_store is not None:
                self._ledger_store.write(self.state)

        self._publish_gauges()

    # ----------------------------
    # Internals
    # ----------------------------

    def _publish_gauges(self) -> None:
        stakes = self.state.get("stakes")
        records = [
            r for seq in (stakes.values() if isinstance(stakes, dict) else ()) if isinstance(seq, list) for r in seq
        ]
        view = LedgerView.from_ledger(self.state)
        set_ledger_gauges(
            stakes_total=len(records),
            stakes_active=sum(1 for r in records if isinstance(r, dict) and not r.get("claimed")),
            custody_balance=view.balance_of(view.engine_address),
        )

    def _commit(self, staged: Json, receipt: Json) -> None:
        """Persist the staged state with its receipt, then make it current."""
        if self._ledger_store is not None:
            self._ledger_store.write(staged, receipt=receipt)
        else:
            self._mem_receipts.append(receipt)
        self.state = staged

    def _record_rejection(self, receipt: Json) -> None:
        if self._receipt_store is not None:
            self._receipt_store.append(receipt)
        else:
            self._mem_receipts.append(receipt)

    # ----------------------------
    # Tx submission
    # ----------------------------

    def submit(self, env: Any) -> Json:
        """Apply one envelope. Raises ApplyError unchanged on rejection."""
        env_norm = TxEnvelope.from_json(env)
        tx_type = str(env_norm.tx_type or "").strip().upper()

        with self._lock:
            now = int(self._clock())
            events_before = len(self.state.get("events") or [])

            # Stamp the clock on a copy so a rejected tx does not move time.
            staged = copy.deepcopy(self.state)
            staged["time"] = now

            try:
                meta = apply_tx_atomic(staged, env_norm)
            except ApplyError as e:
                receipt = {
                    "tx_type": tx_type,
                    "signer": env_norm.signer,
                    "ok": False,
                    "code": e.code,
                    "reason": e.reason,
                    "envelope": env_norm.to_json(),
                    "result": {"details": e.details} if e.details is not None else {},
                    "time": now,
                }
                self._record_rejection(receipt)
                observe_rejected(tx_type, e.reason)
                log_receipt(log, receipt)
                raise

            staged["tx_count"] = _safe_int(staged.get("tx_count"), 0) + 1

            receipt = {
                "tx_type": tx_type,
                "signer": env_norm.signer,
                "ok": True,
                "code": "ok",
                "reason": "",
                "envelope": env_norm.to_json(),
                "result": meta,
                "time": now,
            }
            self._commit(staged, receipt)

            new_events = (self.state.get("events") or [])[events_before:]
            observe_applied(tx_type, new_events)
            self._publish_gauges()
            log_receipt(log, receipt, new_events)

            return meta

    def _submit(self, tx_type: str, signer: str, payload: Json, *, system: bool = False) -> Json:
        return self.submit(TxEnvelope(tx_type=tx_type, signer=signer, payload=payload, system=system))

    # ----------------------------
    # Stake ledger / withdrawals
    # ----------------------------

    def stake(self, caller: str, amount: int, duration: int) -> Json:
        return self._submit("STAKE", caller, {"amount": amount, "duration": duration})

    def withdraw(self, caller: str, stake_index: int) -> Json:
        return self._submit("WITHDRAW", caller, {"stake_index": stake_index})

    def early_withdraw(self, caller: str, stake_index: int) -> Json:
        return self._submit("EARLY_WITHDRAW", caller, {"stake_index": stake_index})

    # ----------------------------
    # Access registry
    # ----------------------------

    def add_to_whitelist(self, caller: str, address: str) -> Json:
        return self._submit("WHITELIST_ADD", caller, {"address": address})

    def remove_from_whitelist(self, caller: str, address: str) -> Json:
        return self._submit("WHITELIST_REMOVE", caller, {"address": address})

    def add_multiple_to_whitelist(self, caller: str, addresses: Iterable[str]) -> Json:
        return self._submit("WHITELIST_ADD_MANY", caller, {"addresses": list(addresses)})

    def update_governance(self, caller: str, new_governance: str) -> Json:
        return self._submit("GOVERNANCE_UPDATE", caller, {"new_governance": new_governance})

    # ----------------------------
    # Governance controls
    # ----------------------------

    def update_developer_wallet(self, caller: str, developer_wallet: str) -> Json:
        return self._submit("DEVELOPER_WALLET_UPDATE", caller, {"developer_wallet": developer_wallet})

    def update_staking_rates(self, caller: str, rate_30: int, rate_60: int, rate_90: int) -> Json:
        return self._submit(
            "STAKING_RATES_UPDATE",
            caller,
            {"rate_30": rate_30, "rate_60": rate_60, "rate_90": rate_90},
        )

    def update_early_withdrawal_penalty(self, caller: str, percent: int) -> Json:
        return self._submit("EARLY_WITHDRAWAL_PENALTY_UPDATE", caller, {"percent": percent})

    def sweep_unclaimed_tokens(self, caller: str, threshold_days: int) -> Json:
        return self._submit("UNCLAIMED_SWEEP", caller, {"threshold_days": threshold_days})

    # ----------------------------
    # Token ledger
    # ----------------------------

    def approve(self, owner: str, spender: str, amount: int) -> Json:
        return self._submit("TOKEN_APPROVE", owner, {"spender": spender, "amount": amount})

    def transfer(self, sender: str, to: str, amount: int) -> Json:
        return self._submit("TOKEN_TRANSFER", sender, {"to": to, "amount": amount})

    def mint(self, to: str, amount: int) -> Json:
        return self._submit("TOKEN_MINT", "SYSTEM", {"to": to, "amount": amount}, system=True)

    # ----------------------------
    # Views
    # ----------------------------

    def read_state(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def view(self) -> LedgerView:
        with self._lock:
            return LedgerView.from_ledger(self.state)

    def receipts(
        self,
        *,
        signer: Optional[str] = None,
        tx_type: Optional[str] = None,
        ok: Optional[bool] = None,
        limit: int = 100,
    ) -> List[Json]:
        if self._receipt_store is not None:
            return self._receipt_store.list(signer=signer, tx_type=tx_type, ok=ok, limit=limit)
        want_type = str(tx_type or "").strip().upper()
        with self._lock:
            rows = [
                r
                for r in self._mem_receipts
                if (not signer or r.get("signer") == signer)
                and (not want_type or r.get("tx_type") == want_type)
                and (ok is None or bool(r.get("ok")) == ok)
            ]
            return copy.deepcopy(rows[: max(0, int(limit))])

    def get_user_stakes(self, account: str) -> List[StakeRecord]:
        return self.view().get_user_stakes(account)

    def get_user_stakes_paginated(self, account: str, offset: int, limit: int) -> List[StakeRecord]:
        return self.view().get_user_stakes_paginated(account, offset, limit)

    def get_total_active_stakes_paginated(self, account: str, offset: int, limit: int) -> int:
        return self.view().get_total_active_stakes_paginated(account, offset, limit)

    def calculate_rewards(self, record: Any) -> int:
        return self.view().calculate_rewards(record)

    def is_whitelisted(self, account: str) -> bool:
        return self.view().is_whitelisted(account)

    @property
    def governance(self) -> str:
        return self.view().governance

    @property
    def developer_wallet(self) -> str:
        return self.view().developer_wallet

    @property
    def engine_address(self) -> str:
        return self.view().engine_address

    @property
    def staking_rate_30_days(self) -> int:
        return self.view().staking_rate_30_days

    @property
    def staking_rate_60_days(self) -> int:
        return self.view().staking_rate_60_days

    @property
    def staking_rate_90_days(self) -> int:
        return self.view().staking_rate_90_days

    @property
    def interest_pool(self) -> int:
        return self.view().interest_pool

    def balance_of(self, account: str) -> int:
        return self.view().balance_of(account)

    def allowance(self, owner: str, spender: str) -> int:
        return self.view().allowance(owner, spender)

    def events(self, *, after: int = 0, limit: int = 100) -> List[Json]:
        return self.view().get_events(after=after, limit=limit)

    def now(self) -> int:
        return int(self._clock())

    def __repr__(self) -> str:  # pragma: no cover
        return f"StakingExecutor(engine_id={self.cfg.engine_id!r}, db_path={self.db_path!r})"


def build_executor(cfg: Optional[EngineConfig] = None, *, clock: Optional[Clock] = None) -> StakingExecutor:
    """
    Build a StakingExecutor from an explicit config or, if omitted, from
    STAKELEDGER_CONFIG_PATH / defaults. An empty cfg.db_path stays in memory.
    """
    c = cfg or load_engine_config()
    return StakingExecutor(c, db_path=c.db_path or None, clock=clock)


__all__ = ["ExecutorError", "StakingExecutor", "build_executor"]
