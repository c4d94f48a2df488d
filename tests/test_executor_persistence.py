# tests/test_executor_persistence.py
from __future__ import annotations

from pathlib import Path

import pytest

from stakeledger.ledger.constants import COIN, DEFAULT_ENGINE_ADDRESS, DURATION_30_DAYS
from stakeledger.runtime.engine_config import EngineConfig
from stakeledger.runtime.errors import ApplyError
from stakeledger.runtime.executor import ExecutorError, StakingExecutor, build_executor
from stakeledger.runtime.sqlite_db import SqliteDB, SqliteLedgerStore, SqliteReceiptStore
from stakeledger.testing.clock import ManualClock

GOV = "0x" + "90" * 20
DEV = "0x" + "de" * 20
TOKEN = "0x" + "70" * 20
ALICE = "0x" + "a1" * 20


def _cfg(db_path: str = "", engine_id: str = "stakeledger-test") -> EngineConfig:
    return EngineConfig(
        engine_id=engine_id,
        mode="dev",
        db_path=db_path,
        engine_address=DEFAULT_ENGINE_ADDRESS,
        token_address=TOKEN,
        deployer=GOV,
        developer_wallet=DEV,
        initial_whitelist=(ALICE,),
    )


def test_state_survives_restart(tmp_path: Path) -> None:
    db_path = str(tmp_path / "engine.db")
    clock = ManualClock()

    ex = StakingExecutor(_cfg(), db_path=db_path, clock=clock)
    ex.mint(ALICE, 10 * COIN)
    ex.approve(ALICE, ex.engine_address, 10 * COIN)
    ex.stake(ALICE, 4 * COIN, DURATION_30_DAYS)

    ex2 = StakingExecutor(_cfg(), db_path=db_path, clock=clock)
    assert ex2.read_state() == ex.read_state()
    assert ex2.balance_of(ALICE) == 6 * COIN
    assert len(ex2.get_user_stakes(ALICE)) == 1
    assert ex2.read_state()["tx_count"] == 3

    clock.advance_days(2)
    ex2.early_withdraw(ALICE, 0)
    ex3 = StakingExecutor(_cfg(), db_path=db_path, clock=clock)
    assert ex3.get_user_stakes(ALICE)[0].claimed is True


def test_receipts_record_applied_and_rejected_txs(tmp_path: Path) -> None:
    db_path = str(tmp_path / "engine.db")
    ex = StakingExecutor(_cfg(), db_path=db_path, clock=ManualClock())

    ex.add_to_whitelist(GOV, "0x" + "b2" * 20)
    with pytest.raises(ApplyError):
        ex.add_to_whitelist(ALICE, "0x" + "c3" * 20)

    rows = ex.receipts()
    assert [(r["tx_type"], r["ok"], r["reason"]) for r in rows] == [
        ("WHITELIST_ADD", True, ""),
        ("WHITELIST_ADD", False, "only_governance"),
    ]
    assert ex.receipts(signer=ALICE)[0]["code"] == "forbidden"

    # Rejections never advance the snapshot.
    assert ex.read_state()["tx_count"] == 1
    store = SqliteLedgerStore(db=SqliteDB(path=db_path))
    assert store.read()["tx_count"] == 1
    assert SqliteReceiptStore(db=SqliteDB(path=db_path)).count() == 2


def test_engine_id_mismatch_refuses_to_start(tmp_path: Path) -> None:
    db_path = str(tmp_path / "engine.db")
    StakingExecutor(_cfg(), db_path=db_path, clock=ManualClock())
    with pytest.raises(ExecutorError):
        StakingExecutor(_cfg(engine_id="other"), db_path=db_path, clock=ManualClock())


def test_in_memory_executor_keeps_receipts_in_memory() -> None:
    ex = StakingExecutor(_cfg(), clock=ManualClock())
    ex.add_to_whitelist(GOV, "0x" + "b2" * 20)
    assert ex.db_path == ""
    assert len(ex.receipts()) == 1


def test_read_state_is_a_copy() -> None:
    ex = StakingExecutor(_cfg(), clock=ManualClock())
    st = ex.read_state()
    st["whitelist"]["0x" + "ff" * 20] = True
    assert ex.is_whitelisted("0x" + "ff" * 20) is False


def test_build_executor_uses_config_db_path(tmp_path: Path) -> None:
    ex = build_executor(_cfg(db_path=str(tmp_path / "sub" / "engine.db")))
    assert (tmp_path / "sub" / "engine.db").exists()
    assert ex.governance == GOV


def test_schema_version_mismatch_fails_closed(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "engine.db"))
    db.init_schema()
    with db.write_tx() as con:
        con.execute("UPDATE meta SET value='99' WHERE key='schema_version';")
    with pytest.raises(RuntimeError):
        db.init_schema()


def test_failed_snapshot_write_leaves_memory_unchanged(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    db_path = str(tmp_path / "engine.db")
    ex = StakingExecutor(_cfg(), db_path=db_path, clock=ManualClock())
    rate_before = ex.staking_rate_30_days

    def _disk_full(self, st, *, receipt=None):
        raise OSError("disk full")

    monkeypatch.setattr(SqliteLedgerStore, "write", _disk_full)
    with pytest.raises(OSError):
        ex.update_staking_rates(GOV, 777, 777, 777)

    assert ex.staking_rate_30_days == rate_before
    assert ex.read_state()["tx_count"] == 0
    assert ex.events() == []

    monkeypatch.undo()
    reopened = StakingExecutor(_cfg(), db_path=db_path, clock=ManualClock())
    assert reopened.read_state() == ex.read_state()

    ex.update_staking_rates(GOV, 777, 777, 777)
    assert ex.staking_rate_30_days == 777
    assert ex.read_state()["tx_count"] == 1


def test_ledger_head_reports_engine_and_progress(tmp_path: Path) -> None:
    db_path = str(tmp_path / "engine.db")
    clock = ManualClock()
    ex = StakingExecutor(_cfg(), db_path=db_path, clock=clock)
    store = SqliteLedgerStore(db=SqliteDB(path=db_path))
    assert store.head() == {"engine_id": "stakeledger-test", "tx_count": 0, "engine_time": clock()}

    clock.advance(5)
    ex.add_to_whitelist(GOV, "0x" + "b2" * 20)
    assert store.head() == {"engine_id": "stakeledger-test", "tx_count": 1, "engine_time": clock()}


@pytest.mark.parametrize("persistent", [True, False])
def test_receipts_filter_by_type_and_outcome(tmp_path: Path, persistent: bool) -> None:
    db_path = str(tmp_path / "engine.db") if persistent else None
    ex = StakingExecutor(_cfg(), db_path=db_path, clock=ManualClock())
    ex.mint(ALICE, COIN)
    ex.add_to_whitelist(GOV, "0x" + "b2" * 20)
    with pytest.raises(ApplyError):
        ex.add_to_whitelist(ALICE, "0x" + "c3" * 20)

    assert [r["tx_type"] for r in ex.receipts(ok=True)] == ["TOKEN_MINT", "WHITELIST_ADD"]
    assert [r["reason"] for r in ex.receipts(ok=False)] == ["only_governance"]
    assert len(ex.receipts(tx_type="whitelist_add")) == 2
    assert ex.receipts(limit=1)[0]["tx_type"] == "TOKEN_MINT"
