# src/stakeledger/runtime/domain_dispatch.py

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

from stakeledger.runtime.errors import ApplyError
from stakeledger.runtime.state_invariants import ensure_state
from stakeledger.runtime.tx_envelope import TxEnvelope

# Domain appliers (each returns Optional[Json]; returning None means "not claimed")
from stakeledger.runtime.apply.access import ACCESS_TX_TYPES, apply_access
from stakeledger.runtime.apply.governance import GOVERNANCE_TX_TYPES, apply_governance
from stakeledger.runtime.apply.staking import STAKING_TX_TYPES, apply_staking
from stakeledger.runtime.apply.token import TOKEN_TX_TYPES, apply_token

Json = Dict[str, Any]
ApplyFn = Callable[[Json, Any], Optional[Json]]


def _get(env: Any, key: str, default: Any = None) -> Any:
    """Read a field from either a TxEnvelope-like object or a dict.

    Tests and the HTTP layer pass raw dict envelopes directly into apply_tx(),
    while the executor passes TxEnvelope objects.
    """

    if isinstance(env, dict):
        return env.get(key, default)
    return getattr(env, key, default)


def _tx_type(env: Any) -> str:
    return str(_get(env, "tx_type", "") or "").strip().upper()


_APPLIERS: Tuple[ApplyFn, ...] = (
    apply_access,
    apply_staking,
    apply_governance,
    apply_token,
)

SUPPORTED_TX_TYPES = frozenset(ACCESS_TX_TYPES | STAKING_TX_TYPES | GOVERNANCE_TX_TYPES | TOKEN_TX_TYPES)


def apply_tx(state: Json, env: Any) -> Json:
    """Dispatch a TxEnvelope to the first domain applier that claims it.

    Mutates `state` in place; use domain_apply.apply_tx_atomic for
    all-or-nothing semantics.
    """

    ensure_state(state)

    env_norm: Any = env
    if isinstance(env, dict):
        env_norm = TxEnvelope.from_json(env)

    t = _tx_type(env_norm)
    if not t:
        raise ApplyError("invalid_tx", "missing_tx_type", {"tx_type": t})

    for fn in _APPLIERS:
        try:
            out = fn(state, env_norm)
        except ApplyError:
            raise
        except Exception as e:
            code = getattr(e, "code", None)
            reason = getattr(e, "reason", None)
            details = getattr(e, "details", None)

            if code is not None or reason is not None:
                raise ApplyError(
                    str(code or "domain_error"),
                    str(reason or type(e).__name__),
                    details if details is not None else {"tx_type": t, "domain": fn.__name__},
                ) from e

            raise ApplyError(
                "domain_error",
                type(e).__name__,
                {"tx_type": t, "domain": fn.__name__, "error": str(e)},
            ) from e

        if out is not None:
            return out

    raise ApplyError("tx_unimplemented", "tx_type_not_implemented", {"tx_type": t})


__all__ = ["ApplyError", "SUPPORTED_TX_TYPES", "apply_tx"]
