from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class TxEnvelope:
    """One state transition request.

    `signer` is the caller identity supplied by the host environment; the
    engine trusts it as non-forgeable. `system` marks host-originated txs
    (e.g. token minting) that no user signer may submit.
    """

    tx_type: str
    signer: str
    payload: Dict[str, Any]
    system: bool = False

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        return TxEnvelope(
            tx_type=str(j.get("tx_type", "")),
            signer=str(j.get("signer", "")),
            payload=dict(j.get("payload", {}) or {}),
            system=bool(j.get("system", False)),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "tx_type": self.tx_type,
            "signer": self.signer,
            "payload": self.payload,
            "system": self.system,
        }
