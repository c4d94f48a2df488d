from __future__ import annotations

from fastapi import APIRouter, Request

from stakeledger.api.errors import ApiError
from stakeledger.api.routes_public_parts.common import Json, _executor
from stakeledger.api.schemas import TxSubmitRequest
from stakeledger.api.structured_logging import note_tx_outcome
from stakeledger.runtime.domain_dispatch import SUPPORTED_TX_TYPES
from stakeledger.runtime.errors import ApplyError
from stakeledger.runtime.tx_envelope import TxEnvelope

router = APIRouter()


@router.post("/tx/submit")
def tx_submit(body: TxSubmitRequest, request: Request) -> Json:
    """Apply a tx envelope whose signer is taken at face value.

    Only available when the engine config sets allow_unsigned_txs (dev hosts).
    Elsewhere the caller identity must come from the embedding host.

    Returns:
      { ok, tx_type, result }
    """
    ex = _executor(request)
    if not bool(getattr(ex.cfg, "allow_unsigned_txs", False)):
        raise ApiError.forbidden(
            "unsigned_txs_disabled",
            "HTTP tx submission is disabled on this host",
            {},
        )

    tx_type = str(body.tx_type or "").strip().upper()
    signer = str(body.signer or "").strip()

    if signer == "SYSTEM":
        raise ApiError.forbidden(
            "system_tx_forbidden",
            "system-only txs cannot be submitted through the public tx endpoint",
            {"tx_type": tx_type, "signer": signer},
        )
    if not signer:
        raise ApiError.bad_request("invalid_payload", "missing signer", {})
    if tx_type not in SUPPORTED_TX_TYPES:
        raise ApiError.bad_request("invalid_payload", "unknown tx_type", {"tx_type": tx_type})

    env = TxEnvelope(tx_type=tx_type, signer=signer, payload=dict(body.payload))
    try:
        result = ex.submit(env)
    except ApplyError as e:
        note_tx_outcome(request, tx_type=tx_type, code=e.code, reason=e.reason)
        raise
    note_tx_outcome(request, tx_type=tx_type, code="ok")
    return {"ok": True, "tx_type": tx_type, "result": result}
