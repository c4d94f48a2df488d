# src/stakeledger/runtime/domain_apply.py
# ---------------------------------------------------------------------------
# Public, stable import path for applying tx envelopes.
# ---------------------------------------------------------------------------

from __future__ import annotations

import copy
from typing import Any, Dict

from stakeledger.runtime.domain_dispatch import ApplyError, apply_tx
from stakeledger.runtime.tx_envelope import TxEnvelope

Json = Dict[str, Any]


def apply_tx_atomic(state: Json, env: Any) -> Json:
    """Apply a tx with fail-atomic semantics.

    On success:
      - state is updated as if apply_tx() ran directly.

    On ApplyError:
      - state remains unchanged (no record flip, no event, no transfer).

    Stake bookkeeping and token transfers happen in one call; a transfer that
    fails after the claimed flip must not leave the flip behind.
    """

    env_norm: Any = env
    if isinstance(env, dict):
        env_norm = TxEnvelope.from_json(env)

    # Apply on a deep copy to guarantee atomicity.
    snapshot = copy.deepcopy(state)

    meta = apply_tx(snapshot, env_norm)

    # Commit by replacing contents in-place so callers holding references
    # to `state` see the updated view.
    state.clear()
    state.update(snapshot)
    return meta


__all__ = ["ApplyError", "apply_tx", "apply_tx_atomic", "Json"]
