# src/stakeledger/runtime/engine_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from stakeledger.ledger.constants import (
    DEFAULT_EARLY_WITHDRAWAL_PENALTY_PERCENT,
    DEFAULT_ENGINE_ADDRESS,
    DEFAULT_INTEREST_POOL,
    DEFAULT_STAKING_RATE_30,
    DEFAULT_STAKING_RATE_60,
    DEFAULT_STAKING_RATE_90,
    MAX_EARLY_WITHDRAWAL_PENALTY_PERCENT,
    MAX_STAKE_30,
    MAX_STAKE_60,
    MAX_STAKE_90,
)
from stakeledger.ledger.types import normalize_address

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


def _as_addr_tuple(v: Any) -> Tuple[str, ...]:
    if not isinstance(v, (list, tuple)):
        return ()
    return tuple(normalize_address(x) for x in v if str(x or "").strip())


@dataclass(frozen=True)
class EngineConfig:
    engine_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # SQLite snapshot path; empty string keeps the engine in memory.
    db_path: str

    # Custody account inside the token ledger, and the staked token's address.
    engine_address: str
    token_address: str

    # Initial governance principal (the deployer) and fee/penalty recipient.
    deployer: str
    developer_wallet: str

    interest_pool: int = DEFAULT_INTEREST_POOL
    staking_rate_30: int = DEFAULT_STAKING_RATE_30
    staking_rate_60: int = DEFAULT_STAKING_RATE_60
    staking_rate_90: int = DEFAULT_STAKING_RATE_90
    early_withdrawal_penalty_percent: int = DEFAULT_EARLY_WITHDRAWAL_PENALTY_PERCENT
    max_stake_30: int = MAX_STAKE_30
    max_stake_60: int = MAX_STAKE_60
    max_stake_90: int = MAX_STAKE_90

    initial_whitelist: Tuple[str, ...] = field(default_factory=tuple)

    api_host: str = "127.0.0.1"
    api_port: int = 8080

    # Caller identity comes from the host. Only a dev host may accept the
    # signer field of an HTTP-submitted envelope at face value.
    allow_unsigned_txs: bool = False

    log_level: str = "INFO"


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_engine_config(cfg: EngineConfig) -> None:
    """Fail-fast validation for operator config.

    Zero token/developer addresses are *not* checked here: genesis rejects
    them with the same ApplyError codes a deploy-time check would produce.
    """

    if not isinstance(cfg.engine_id, str) or not cfg.engine_id.strip():
        raise ValueError("engine_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if mode == "prod" and cfg.allow_unsigned_txs:
        raise ValueError("allow_unsigned_txs is not permitted in prod mode")

    if not str(cfg.engine_address or "").strip():
        raise ValueError("engine_address must be a non-empty string")

    if not str(cfg.deployer or "").strip():
        raise ValueError("deployer must be a non-empty string")

    for name in ("staking_rate_30", "staking_rate_60", "staking_rate_90"):
        if int(getattr(cfg, name)) <= 0:
            raise ValueError(f"{name} must be > 0; got: {getattr(cfg, name)}")

    pct = int(cfg.early_withdrawal_penalty_percent)
    if pct < 0 or pct > MAX_EARLY_WITHDRAWAL_PENALTY_PERCENT:
        raise ValueError(f"early_withdrawal_penalty_percent must be 0..{MAX_EARLY_WITHDRAWAL_PENALTY_PERCENT}; got: {pct}")

    if int(cfg.interest_pool) < 0:
        raise ValueError(f"interest_pool must be >= 0; got: {cfg.interest_pool}")

    for name in ("max_stake_30", "max_stake_60", "max_stake_90"):
        if int(getattr(cfg, name)) <= 0:
            raise ValueError(f"{name} must be > 0; got: {getattr(cfg, name)}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")


def default_engine_config() -> EngineConfig:
    return EngineConfig(
        engine_id="stakeledger-dev",
        # Production-safe default: no unsigned submissions unless asked for.
        mode="prod",
        db_path="./data/stakeledger.db",
        engine_address=DEFAULT_ENGINE_ADDRESS,
        token_address=os.environ.get("STAKELEDGER_TOKEN_ADDRESS", ""),
        deployer=os.environ.get("STAKELEDGER_DEPLOYER", "governance"),
        developer_wallet=os.environ.get("STAKELEDGER_DEVELOPER_WALLET", ""),
        api_host=os.environ.get("STAKELEDGER_API_HOST", "127.0.0.1"),
        api_port=_as_int(os.environ.get("STAKELEDGER_API_PORT"), 8080),
        log_level=os.environ.get("STAKELEDGER_LOG_LEVEL", "INFO"),
    )


def _read_raw(path: str) -> Json:
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError("engine config must be a mapping/object")
    return raw


def read_engine_config_file(path: str) -> EngineConfig:
    """Read a JSON (or .yaml/.yml) engine config; missing keys take defaults."""
    raw = _read_raw(path)
    d = default_engine_config()

    cfg = EngineConfig(
        engine_id=_as_str(raw.get("engine_id"), d.engine_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=str(raw.get("db_path", d.db_path) or ""),
        engine_address=normalize_address(_as_str(raw.get("engine_address"), d.engine_address)),
        token_address=normalize_address(_as_str(raw.get("token_address"), d.token_address)),
        deployer=normalize_address(_as_str(raw.get("deployer"), d.deployer)),
        developer_wallet=normalize_address(_as_str(raw.get("developer_wallet"), d.developer_wallet)),
        interest_pool=_as_int(raw.get("interest_pool"), d.interest_pool),
        staking_rate_30=_as_int(raw.get("staking_rate_30"), d.staking_rate_30),
        staking_rate_60=_as_int(raw.get("staking_rate_60"), d.staking_rate_60),
        staking_rate_90=_as_int(raw.get("staking_rate_90"), d.staking_rate_90),
        early_withdrawal_penalty_percent=_as_int(
            raw.get("early_withdrawal_penalty_percent"), d.early_withdrawal_penalty_percent
        ),
        max_stake_30=_as_int(raw.get("max_stake_30"), d.max_stake_30),
        max_stake_60=_as_int(raw.get("max_stake_60"), d.max_stake_60),
        max_stake_90=_as_int(raw.get("max_stake_90"), d.max_stake_90),
        initial_whitelist=_as_addr_tuple(raw.get("initial_whitelist")),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        allow_unsigned_txs=_as_bool(raw.get("allow_unsigned_txs"), d.allow_unsigned_txs),
        log_level=_as_str(raw.get("log_level"), d.log_level),
    )

    validate_engine_config(cfg)
    return cfg


def load_engine_config(*, config_path: Optional[str] = None) -> EngineConfig:
    p = config_path or os.environ.get("STAKELEDGER_CONFIG_PATH")
    if p:
        return read_engine_config_file(p)

    cfg = default_engine_config()
    validate_engine_config(cfg)
    return cfg


def apply_engine_config_to_env(cfg: EngineConfig) -> None:
    validate_engine_config(cfg)
    os.environ["STAKELEDGER_ENGINE_ID"] = cfg.engine_id
    os.environ["STAKELEDGER_MODE"] = (cfg.mode or "prod").strip().lower()
    os.environ["STAKELEDGER_DB_PATH"] = cfg.db_path
    os.environ["STAKELEDGER_LOG_LEVEL"] = cfg.log_level
