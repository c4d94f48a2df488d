from __future__ import annotations

"""Pydantic request schemas for the public API.

Canonical payload validation lives in the domain appliers; these models only
shape HTTP input.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field


class TxSubmitRequest(BaseModel):
    tx_type: str = Field(..., description="Envelope type, e.g. STAKE")
    signer: str = Field(..., description="Caller address")
    payload: Dict[str, Any] = Field(default_factory=dict)


class StakeRecordIn(BaseModel):
    """A stake record to preview rewards for. It need not exist in the ledger."""

    amount: int = Field(..., ge=0)
    duration: int = Field(..., description="Lock duration in seconds")
    start_time: int = Field(default=0)
    end_time: int = Field(default=0)
    claimed: bool = Field(default=False)
