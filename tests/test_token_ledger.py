# tests/test_token_ledger.py
from __future__ import annotations

import pytest

from stakeledger.ledger.constants import ZERO_ADDRESS
from stakeledger.ledger.token import StateTokenLedger, TokenApplyError
from stakeledger.runtime.domain_apply import ApplyError, apply_tx

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
ENGINE = "0x" + "ee" * 20


def _env(tx_type: str, signer: str, payload: dict, *, system: bool = False) -> dict:
    return {"tx_type": tx_type, "signer": signer, "payload": payload, "system": system}


def test_mint_and_transfer() -> None:
    st: dict = {}
    tok = StateTokenLedger(st)
    tok.mint(ALICE, 100)
    assert tok.total_supply() == 100

    tok.transfer(ALICE, BOB, 40)
    assert tok.balance_of(ALICE) == 60
    assert tok.balance_of(BOB) == 40
    assert tok.total_supply() == 100

    with pytest.raises(TokenApplyError) as e:
        tok.transfer(ALICE, BOB, 61)
    assert e.value.code == "token_error"
    assert e.value.reason == "insufficient_balance"


def test_transfer_rejects_zero_receiver_and_negative_amount() -> None:
    tok = StateTokenLedger({})
    tok.mint(ALICE, 10)

    with pytest.raises(TokenApplyError) as e:
        tok.transfer(ALICE, ZERO_ADDRESS, 1)
    assert e.value.reason == "invalid_receiver"

    with pytest.raises(TokenApplyError) as e:
        tok.transfer(ALICE, BOB, -1)
    assert e.value.reason == "invalid_amount"


def test_transfer_from_checks_allowance_before_balance() -> None:
    tok = StateTokenLedger({})

    with pytest.raises(TokenApplyError) as e:
        tok.transfer_from(ENGINE, ALICE, ENGINE, 5)
    assert e.value.reason == "insufficient_allowance"

    tok.approve(ALICE, ENGINE, 5)
    with pytest.raises(TokenApplyError) as e:
        tok.transfer_from(ENGINE, ALICE, ENGINE, 5)
    assert e.value.reason == "insufficient_balance"

    tok.mint(ALICE, 5)
    tok.transfer_from(ENGINE, ALICE, ENGINE, 5)
    assert tok.balance_of(ENGINE) == 5
    assert tok.allowance(ALICE, ENGINE) == 0


def test_zero_value_transfer_from_without_allowance_entry() -> None:
    tok = StateTokenLedger({})
    tok.transfer_from(ENGINE, ALICE, BOB, 0)
    assert tok.balance_of(BOB) == 0


def test_token_envelopes() -> None:
    st: dict = {}
    apply_tx(st, _env("TOKEN_MINT", "SYSTEM", {"to": ALICE, "amount": 10}, system=True))
    apply_tx(st, _env("TOKEN_TRANSFER", ALICE, {"to": BOB, "amount": 3}))
    apply_tx(st, _env("TOKEN_APPROVE", ALICE, {"spender": ENGINE, "amount": 7}))

    tok = StateTokenLedger(st)
    assert tok.balance_of(ALICE) == 7
    assert tok.balance_of(BOB) == 3
    assert tok.allowance(ALICE, ENGINE) == 7


def test_mint_requires_system_envelope() -> None:
    with pytest.raises(ApplyError) as e:
        apply_tx({}, _env("TOKEN_MINT", ALICE, {"to": ALICE, "amount": 10}))
    assert e.value.code == "forbidden"
    assert e.value.reason == "system_tx_required"
