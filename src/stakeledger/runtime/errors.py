from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from stakeledger.ledger.types import normalize_address


@dataclass
class ApplyError(Exception):
    """Canonical error type for domain apply and dispatch failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


def only_governance(state_params: Any, signer: str) -> None:
    """Raise the Authorization error unless `signer` is the current governance.

    Identities compare in canonical address form: 0x-hex addresses are
    case-insensitive, any other principal name is matched exactly.
    """
    gov = ""
    if isinstance(state_params, dict):
        gov = normalize_address(state_params.get("governance"))
    if not gov or normalize_address(signer) != gov:
        raise ApplyError("forbidden", "only_governance", {"signer": signer})
