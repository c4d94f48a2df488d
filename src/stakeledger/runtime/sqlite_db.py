# src/stakeledger/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

Json = Dict[str, Any]

SCHEMA_VERSION = 1

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS meta (
      key TEXT PRIMARY KEY,
      value TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS ledger_state (
      id INTEGER PRIMARY KEY CHECK (id = 1),
      engine_id TEXT NOT NULL,
      tx_count INTEGER NOT NULL,
      engine_time INTEGER NOT NULL,
      state_json TEXT NOT NULL,
      updated_ts_ms INTEGER NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS receipts (
      seq INTEGER PRIMARY KEY AUTOINCREMENT,
      tx_type TEXT NOT NULL,
      signer TEXT NOT NULL,
      ok INTEGER NOT NULL,
      code TEXT NOT NULL,
      reason TEXT NOT NULL,
      envelope_json TEXT NOT NULL,
      result_json TEXT NOT NULL,
      engine_time INTEGER NOT NULL,
      created_ts_ms INTEGER NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_receipts_signer ON receipts(signer, seq);",
    "CREATE INDEX IF NOT EXISTS idx_receipts_tx_type ON receipts(tx_type, seq);",
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _dumps(obj: Any) -> str:
    # No default=: a non-JSON value in engine state is a bug, not something to stringify.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_ms(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        return max(0, int(raw)) if raw else default
    except ValueError:
        return default


def _synchronous() -> str:
    """FULL in prod, NORMAL elsewhere; STAKELEDGER_SQLITE_SYNCHRONOUS overrides."""
    default = "FULL" if (os.environ.get("STAKELEDGER_MODE") or "prod").strip().lower() == "prod" else "NORMAL"
    raw = (os.environ.get("STAKELEDGER_SQLITE_SYNCHRONOUS") or "").strip().upper()
    return raw if raw in {"OFF", "NORMAL", "FULL", "EXTRA"} else default


class SqliteDB:
    """One SQLite file holding the engine snapshot and its receipt log.

    Connections are opened per operation and never shared across threads.
    Writes run inside BEGIN IMMEDIATE; lock contention is retried with jittered
    backoff until STAKELEDGER_SQLITE_WRITE_DEADLINE_MS, then raised.
    """

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        con = sqlite3.connect(
            self.path,
            timeout=_env_ms("STAKELEDGER_SQLITE_CONNECT_TIMEOUT_MS", 30_000) / 1000.0,
            isolation_level=None,
            check_same_thread=False,
        )
        try:
            con.row_factory = sqlite3.Row
            con.execute("PRAGMA journal_mode=WAL;")
            con.execute(f"PRAGMA synchronous={_synchronous()};")
            con.execute(f"PRAGMA busy_timeout={_env_ms('STAKELEDGER_SQLITE_BUSY_TIMEOUT_MS', 30_000)};")
            yield con
        finally:
            con.close()

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        deadline = _now_ms() + max(250, _env_ms("STAKELEDGER_SQLITE_WRITE_DEADLINE_MS", 30_000))
        with self.connection() as con:
            delay = 0.005
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    locked = "locked" in str(e).lower() or "busy" in str(e).lower()
                    if not locked or _now_ms() >= deadline:
                        raise
                    time.sleep(delay * (0.5 + random.random()))
                    delay = min(delay * 2, 0.25)
            try:
                yield con
            except BaseException:
                con.execute("ROLLBACK;")
                raise
            con.execute("COMMIT;")

    def init_schema(self) -> None:
        """Create tables; refuse a file written by another schema version."""
        with self.write_tx() as con:
            for stmt in _SCHEMA:
                con.execute(stmt)
            row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(SCHEMA_VERSION),))
            elif str(row["value"]) != str(SCHEMA_VERSION):
                raise RuntimeError(
                    f"sqlite schema_version mismatch: have={row['value']} want={SCHEMA_VERSION}; refusing to open"
                )


def _insert_receipt(con: sqlite3.Connection, receipt: Json) -> int:
    cur = con.execute(
        """
        INSERT INTO receipts(tx_type, signer, ok, code, reason, envelope_json, result_json, engine_time, created_ts_ms)
        VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?);
        """,
        (
            str(receipt.get("tx_type") or ""),
            str(receipt.get("signer") or ""),
            1 if receipt.get("ok") else 0,
            str(receipt.get("code") or ""),
            str(receipt.get("reason") or ""),
            _dumps(receipt.get("envelope") or {}),
            _dumps(receipt.get("result") or {}),
            int(receipt.get("time") or 0),
            _now_ms(),
        ),
    )
    return int(cur.lastrowid or 0)


def _receipt_from_row(row: sqlite3.Row) -> Json:
    return {
        "seq": int(row["seq"]),
        "tx_type": str(row["tx_type"]),
        "signer": str(row["signer"]),
        "ok": bool(row["ok"]),
        "code": str(row["code"]),
        "reason": str(row["reason"]),
        "envelope": json.loads(row["envelope_json"]),
        "result": json.loads(row["result_json"]),
        "time": int(row["engine_time"]),
    }


class SqliteLedgerStore:
    """The engine state as a single JSON row, plus the header columns a restart checks first.

    write() takes the receipt of the tx that produced the state so both land in
    one transaction.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db

    def head(self) -> Optional[Json]:
        """engine_id / tx_count / engine_time of the stored state, without parsing it."""
        with self._db.connection() as con:
            row = con.execute("SELECT engine_id, tx_count, engine_time FROM ledger_state WHERE id=1;").fetchone()
        if row is None:
            return None
        return {"engine_id": str(row["engine_id"]), "tx_count": int(row["tx_count"]), "engine_time": int(row["engine_time"])}

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM ledger_state WHERE id=1;").fetchone()
        if row is None:
            raise FileNotFoundError(f"no engine state in {self._db.path}")
        st = json.loads(row["state_json"])
        if not isinstance(st, dict):
            raise ValueError("stored engine state is not a JSON object")
        return st

    def write(self, st: Json, *, receipt: Optional[Json] = None) -> None:
        payload = _dumps(st)
        with self._db.write_tx() as con:
            con.execute(
                """
                INSERT INTO ledger_state(id, engine_id, tx_count, engine_time, state_json, updated_ts_ms)
                VALUES(1, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  engine_id=excluded.engine_id,
                  tx_count=excluded.tx_count,
                  engine_time=excluded.engine_time,
                  state_json=excluded.state_json,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                (
                    str(st.get("engine_id") or ""),
                    int(st.get("tx_count") or 0),
                    int(st.get("time") or 0),
                    payload,
                    _now_ms(),
                ),
            )
            if receipt is not None:
                _insert_receipt(con, receipt)


class SqliteReceiptStore:
    """Append-only log of applied and rejected envelopes, ordered by seq."""

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db

    def append(self, receipt: Json) -> int:
        with self._db.write_tx() as con:
            return _insert_receipt(con, receipt)

    def count(self, *, ok: Optional[bool] = None) -> int:
        q = "SELECT COUNT(1) AS n FROM receipts"
        args: tuple = ()
        if ok is not None:
            q += " WHERE ok=?"
            args = (1 if ok else 0,)
        with self._db.connection() as con:
            return int(con.execute(q, args).fetchone()["n"])

    def list(
        self,
        *,
        signer: Optional[str] = None,
        tx_type: Optional[str] = None,
        ok: Optional[bool] = None,
        after_seq: int = 0,
        limit: int = 100,
    ) -> List[Json]:
        where = ["seq > ?"]
        args: List[Any] = [int(after_seq)]
        if signer:
            where.append("signer = ?")
            args.append(str(signer))
        if tx_type:
            where.append("tx_type = ?")
            args.append(str(tx_type).strip().upper())
        if ok is not None:
            where.append("ok = ?")
            args.append(1 if ok else 0)
        args.append(max(0, int(limit)))

        q = f"SELECT * FROM receipts WHERE {' AND '.join(where)} ORDER BY seq ASC LIMIT ?;"
        with self._db.connection() as con:
            return [_receipt_from_row(r) for r in con.execute(q, args).fetchall()]


__all__ = ["SCHEMA_VERSION", "SqliteDB", "SqliteLedgerStore", "SqliteReceiptStore"]
