# tests/test_api_routes.py
from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from stakeledger.ledger.constants import COIN, DEFAULT_ENGINE_ADDRESS, DURATION_30_DAYS
from stakeledger.runtime.engine_config import EngineConfig
from stakeledger.runtime.executor import StakingExecutor
from stakeledger.testing.clock import ManualClock

GOV = "0x" + "90" * 20
DEV = "0x" + "de" * 20
TOKEN = "0x" + "70" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20


def _client(*, allow_unsigned_txs: bool = False) -> tuple[TestClient, StakingExecutor, ManualClock]:
    from stakeledger.api.app import create_app

    clock = ManualClock(1_700_000_000)
    cfg = EngineConfig(
        engine_id="stakeledger-api-test",
        mode="dev",
        db_path="",
        engine_address=DEFAULT_ENGINE_ADDRESS,
        token_address=TOKEN,
        deployer=GOV,
        developer_wallet=DEV,
        initial_whitelist=(ALICE,),
        allow_unsigned_txs=allow_unsigned_txs,
    )
    ex = StakingExecutor(cfg, clock=clock)
    ex.mint(ex.engine_address, 1_000 * COIN)
    ex.mint(ALICE, 100 * COIN)
    ex.approve(ALICE, ex.engine_address, 100 * COIN)

    app = create_app(boot_runtime=False)
    app.state.executor = ex
    return TestClient(app), ex, clock


def test_create_app_boot_runtime_true_attaches_executor(monkeypatch: pytest.MonkeyPatch) -> None:
    from stakeledger.api import app as api_app

    monkeypatch.setattr(api_app, "build_executor", lambda: SimpleNamespace(engine_id="fake"))
    app = api_app.create_app(boot_runtime=True)
    assert getattr(app.state.executor, "engine_id", "") == "fake"


def test_health_without_executor_still_answers() -> None:
    from stakeledger.api.app import create_app

    with TestClient(create_app(boot_runtime=False)) as c:
        body = c.get("/v1/health").json()
    assert body["ok"] is True
    assert body["ready"] is False


def test_health_and_params() -> None:
    c, ex, _ = _client()
    h = c.get("/v1/health").json()
    assert h["engine_id"] == "stakeledger-api-test"
    assert h["ready"] is True

    p = c.get("/v1/params").json()
    assert p["governance"] == GOV
    assert p["developer_wallet"] == DEV
    assert p["token_address"] == TOKEN
    assert p["staking_rate_30_days"] == 125
    assert p["early_withdrawal_penalty_percent"] == 20
    assert p["interest_pool"] == ex.interest_pool


def test_whitelist_and_balance_routes() -> None:
    c, _, _ = _client()
    assert c.get(f"/v1/whitelist/{ALICE}").json()["whitelisted"] is True
    assert c.get(f"/v1/whitelist/{BOB}").json()["whitelisted"] is False

    body = c.get(f"/v1/tokens/{ALICE}/balance", params={"spender": DEFAULT_ENGINE_ADDRESS}).json()
    assert body["balance"] == 100 * COIN
    assert body["allowance"] == 100 * COIN


def test_stakes_routes_and_pagination() -> None:
    c, ex, clock = _client()
    for _ in range(3):
        ex.stake(ALICE, 10 * COIN, DURATION_30_DAYS)

    all_stakes = c.get(f"/v1/stakes/{ALICE}").json()["stakes"]
    assert [s["stake_index"] for s in all_stakes] == [0, 1, 2]

    window = c.get(f"/v1/stakes/{ALICE}", params={"offset": 2, "limit": 5}).json()["stakes"]
    assert [s["stake_index"] for s in window] == [2]
    assert c.get(f"/v1/stakes/{ALICE}", params={"offset": 9, "limit": 1}).json()["stakes"] == []

    r = c.get(f"/v1/stakes/{ALICE}", params={"offset": -1, "limit": 1})
    assert r.status_code == 400
    assert r.json()["error"]["reason"] == "invalid_pagination"

    r = c.get(f"/v1/stakes/{ALICE}", params={"offset": "x"})
    assert r.status_code == 400

    clock.advance_days(1)
    ex.early_withdraw(ALICE, 1)
    assert c.get(f"/v1/stakes/{ALICE}/active").json()["active"] == 2
    assert c.get(f"/v1/stakes/{ALICE}/active", params={"offset": 1, "limit": 1}).json()["active"] == 0


def test_rewards_preview() -> None:
    c, _, _ = _client()
    r = c.post("/v1/rewards/preview", json={"amount": 1000 * COIN, "duration": DURATION_30_DAYS})
    assert r.status_code == 200
    body = r.json()
    assert body["gross_reward"] == 12_500 * 10**15
    assert body["user_reward"] == 11_875 * 10**15
    assert body["developer_fee"] == 625 * 10**15

    r = c.post("/v1/rewards/preview", json={"amount": COIN, "duration": 5})
    assert r.status_code == 400
    assert r.json()["error"]["reason"] == "invalid_staking_period"


def test_events_route_pages_by_seq() -> None:
    c, ex, _ = _client()
    ex.add_to_whitelist(GOV, BOB)
    ex.remove_from_whitelist(GOV, BOB)

    body = c.get("/v1/events", params={"limit": 1}).json()
    assert [e["event"] for e in body["events"]] == ["WhitelistUpdated"]
    nxt = c.get("/v1/events", params={"after": body["next_after"]}).json()
    assert [e["args"]["whitelisted"] for e in nxt["events"]] == [False]


def test_tx_submit_disabled_by_default() -> None:
    c, _, _ = _client()
    r = c.post("/v1/tx/submit", json={"tx_type": "STAKE", "signer": ALICE, "payload": {}})
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "unsigned_txs_disabled"


def test_tx_submit_maps_apply_errors_to_status_codes() -> None:
    c, ex, _ = _client(allow_unsigned_txs=True)

    r = c.post(
        "/v1/tx/submit",
        json={"tx_type": "stake", "signer": ALICE, "payload": {"amount": 10 * COIN, "duration": DURATION_30_DAYS}},
    )
    assert r.status_code == 200
    assert r.json()["result"]["stake_index"] == 0
    assert len(ex.get_user_stakes(ALICE)) == 1

    cases = [
        ({"tx_type": "WITHDRAW", "signer": ALICE, "payload": {"stake_index": 0}}, 409, "stake_still_locked"),
        ({"tx_type": "WITHDRAW", "signer": ALICE, "payload": {"stake_index": 7}}, 404, "invalid_stake_index"),
        ({"tx_type": "WHITELIST_ADD", "signer": ALICE, "payload": {"address": BOB}}, 403, "only_governance"),
        (
            {"tx_type": "STAKE", "signer": ALICE, "payload": {"amount": COIN, "duration": 1}},
            400,
            "invalid_staking_period",
        ),
    ]
    for body, status, reason in cases:
        r = c.post("/v1/tx/submit", json=body)
        assert r.status_code == status, body
        err = r.json()["error"]
        assert err["reason"] == reason
        assert r.json()["ok"] is False


def test_tx_submit_refuses_system_and_unknown_types() -> None:
    c, _, _ = _client(allow_unsigned_txs=True)

    r = c.post("/v1/tx/submit", json={"tx_type": "TOKEN_MINT", "signer": "SYSTEM", "payload": {}})
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "system_tx_forbidden"

    r = c.post("/v1/tx/submit", json={"tx_type": "TOKEN_MINT", "signer": ALICE, "payload": {"to": ALICE, "amount": 1}})
    assert r.status_code == 403
    assert r.json()["error"]["reason"] == "system_tx_required"

    r = c.post("/v1/tx/submit", json={"tx_type": "SELFDESTRUCT", "signer": ALICE, "payload": {}})
    assert r.status_code == 400


def test_request_id_header_is_echoed() -> None:
    c, _, _ = _client()
    r = c.get("/v1/health", headers={"x-request-id": "req-123"})
    assert r.headers.get("x-request-id") == "req-123"
