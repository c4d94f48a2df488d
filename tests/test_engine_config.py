# tests/test_engine_config.py
from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from stakeledger import env as env_mod
from stakeledger.ledger.constants import DEFAULT_ENGINE_ADDRESS, ZERO_ADDRESS
from stakeledger.runtime.engine_config import (
    EngineConfig,
    apply_engine_config_to_env,
    load_engine_config,
    read_engine_config_file,
    validate_engine_config,
)
from stakeledger.runtime.errors import ApplyError
from stakeledger.runtime.genesis import build_genesis_state

GOV = "0x" + "90" * 20
DEV = "0x" + "de" * 20
TOKEN = "0x" + "70" * 20
ALICE = "0x" + "a1" * 20


def _cfg(**kw) -> EngineConfig:
    base = dict(
        engine_id="stakeledger-test",
        mode="dev",
        db_path="",
        engine_address=DEFAULT_ENGINE_ADDRESS,
        token_address=TOKEN,
        deployer=GOV,
        developer_wallet=DEV,
    )
    base.update(kw)
    return EngineConfig(**base)


def test_read_json_config_fills_defaults(tmp_path: Path) -> None:
    p = tmp_path / "engine.json"
    p.write_text(
        json.dumps(
            {
                "engine_id": "json-engine",
                "mode": "testnet",
                "token_address": TOKEN.upper().replace("0X", "0x"),
                "deployer": GOV,
                "developer_wallet": DEV,
                "staking_rate_30": 130,
                "initial_whitelist": [ALICE, ""],
            }
        ),
        encoding="utf-8",
    )
    cfg = read_engine_config_file(str(p))
    assert cfg.engine_id == "json-engine"
    assert cfg.mode == "testnet"
    assert cfg.token_address == TOKEN
    assert cfg.staking_rate_30 == 130
    assert cfg.staking_rate_60 == 150
    assert cfg.early_withdrawal_penalty_percent == 20
    assert cfg.initial_whitelist == (ALICE,)


def test_read_yaml_config(tmp_path: Path) -> None:
    p = tmp_path / "engine.yaml"
    p.write_text(
        "\n".join(
            [
                "engine_id: yaml-engine",
                "mode: dev",
                f"token_address: '{TOKEN}'",
                f"deployer: '{GOV}'",
                f"developer_wallet: '{DEV}'",
                "early_withdrawal_penalty_percent: 10",
                "allow_unsigned_txs: true",
                "initial_whitelist:",
                f"  - '{ALICE}'",
            ]
        ),
        encoding="utf-8",
    )
    cfg = read_engine_config_file(str(p))
    assert cfg.engine_id == "yaml-engine"
    assert cfg.early_withdrawal_penalty_percent == 10
    assert cfg.allow_unsigned_txs is True
    assert cfg.initial_whitelist == (ALICE,)


def test_load_engine_config_from_env_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / "engine.json"
    p.write_text(json.dumps({"engine_id": "from-env", "mode": "dev"}), encoding="utf-8")
    monkeypatch.setenv("STAKELEDGER_CONFIG_PATH", str(p))
    assert load_engine_config().engine_id == "from-env"


def test_non_mapping_config_rejected(tmp_path: Path) -> None:
    p = tmp_path / "engine.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        read_engine_config_file(str(p))


@pytest.mark.parametrize(
    "kw",
    [
        {"mode": "staging"},
        {"mode": "prod", "allow_unsigned_txs": True},
        {"engine_id": " "},
        {"staking_rate_30": 0},
        {"early_withdrawal_penalty_percent": 51},
        {"interest_pool": -1},
        {"max_stake_90": 0},
        {"api_port": 70000},
    ],
)
def test_validation_fails_fast(kw: dict) -> None:
    with pytest.raises(ValueError):
        validate_engine_config(_cfg(**kw))


def test_apply_engine_config_to_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for k in ("STAKELEDGER_ENGINE_ID", "STAKELEDGER_MODE", "STAKELEDGER_DB_PATH", "STAKELEDGER_LOG_LEVEL"):
        monkeypatch.delenv(k, raising=False)
    apply_engine_config_to_env(_cfg(log_level="DEBUG"))
    assert os.environ["STAKELEDGER_MODE"] == "dev"
    assert os.environ["STAKELEDGER_LOG_LEVEL"] == "DEBUG"


def test_genesis_rejects_zero_addresses() -> None:
    with pytest.raises(ApplyError) as e:
        build_genesis_state(_cfg(token_address=ZERO_ADDRESS))
    assert e.value.reason == "invalid_token_address"

    with pytest.raises(ApplyError) as e:
        build_genesis_state(_cfg(developer_wallet=""))
    assert e.value.reason == "invalid_developer_wallet"


def test_genesis_seeds_params_and_whitelist() -> None:
    st = build_genesis_state(_cfg(initial_whitelist=(ALICE, ZERO_ADDRESS)), now=42)
    assert st["time"] == 42
    assert st["params"]["governance"] == GOV
    assert st["params"]["staking_rate_30"] == 125
    assert st["whitelist"] == {ALICE: True}
    assert st["token"]["total_supply"] == 0
    assert st["events"] == []


def test_dotenv_loaded_without_overriding(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / ".env"
    p.write_text("STAKELEDGER_TEST_A=from-file\nSTAKELEDGER_TEST_B=from-file\n", encoding="utf-8")
    monkeypatch.delenv("STAKELEDGER_TEST_A", raising=False)
    monkeypatch.setenv("STAKELEDGER_TEST_B", "from-env")
    monkeypatch.setenv("STAKELEDGER_DOTENV_PATH", str(p))

    env_mod.reset_dotenv_loaded()
    try:
        assert env_mod.load_dotenv_if_present() is True
        assert os.environ["STAKELEDGER_TEST_A"] == "from-file"
        assert os.environ["STAKELEDGER_TEST_B"] == "from-env"
        # once per process
        assert env_mod.load_dotenv_if_present() is False
    finally:
        os.environ.pop("STAKELEDGER_TEST_A", None)
        env_mod.reset_dotenv_loaded()
