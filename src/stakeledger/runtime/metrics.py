from __future__ import annotations

import os
import threading
from typing import Any, Dict, Iterable, Optional, Tuple

Labels = Tuple[Tuple[str, str], ...]

# name -> (type, help)
_FAMILIES: Dict[str, Tuple[str, str]] = {
    "tx_total": ("counter", "Envelopes submitted to the executor, by tx type and outcome."),
    "tx_rejected_total": ("counter", "Rejected envelopes, by error reason."),
    "events_total": ("counter", "Engine events emitted, by event name."),
    "payouts_total": ("counter", "Token base units paid out of custody, by payout kind."),
    "stakes_total": ("gauge", "Stake records ever opened."),
    "stakes_active": ("gauge", "Stake records not yet claimed or swept."),
    "custody_balance": ("gauge", "Token balance held by the engine address."),
}

# event name -> [(payout kind, args key)]
_PAYOUT_FIELDS: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "Withdrawn": (("principal", "amount"), ("user_reward", "user_reward")),
    "DeveloperFeesPaid": (("developer_fee", "fee"),),
    "EarlyWithdrawn": (("early_return", "amount_returned"), ("penalty", "penalty")),
    "UnclaimedTokensSwept": (("swept", "amount"),),
}

_lock = threading.Lock()
_counters: Dict[Tuple[str, Labels], int] = {}
_gauges: Dict[str, int] = {}


def metrics_enabled() -> bool:
    v = (os.environ.get("STAKELEDGER_METRICS_ENABLED") or "").strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def _labels(labels: Dict[str, Any]) -> Labels:
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def inc_counter(name: str, value: int = 1, **labels: Any) -> None:
    if name not in _FAMILIES:
        raise KeyError(f"unknown metric: {name}")
    key = (name, _labels(labels))
    with _lock:
        _counters[key] = _counters.get(key, 0) + int(value)


def set_gauge(name: str, value: int) -> None:
    if name not in _FAMILIES:
        raise KeyError(f"unknown metric: {name}")
    with _lock:
        _gauges[name] = int(value)


def counter_value(name: str, **labels: Any) -> int:
    with _lock:
        return _counters.get((name, _labels(labels)), 0)


def gauge_value(name: str) -> Optional[int]:
    with _lock:
        return _gauges.get(name)


def observe_applied(tx_type: str, events: Iterable[Dict[str, Any]]) -> None:
    """Count one applied envelope and the payouts carried by its events."""
    inc_counter("tx_total", tx_type=tx_type, outcome="applied")
    for ev in events:
        name = str(ev.get("event") or "")
        inc_counter("events_total", event=name)
        args = ev.get("args") if isinstance(ev.get("args"), dict) else {}
        for kind, key in _PAYOUT_FIELDS.get(name, ()):
            amount = int(args.get(key) or 0)
            if amount > 0:
                inc_counter("payouts_total", amount, kind=kind)


def observe_rejected(tx_type: str, reason: str) -> None:
    inc_counter("tx_total", tx_type=tx_type, outcome="rejected")
    inc_counter("tx_rejected_total", reason=reason)


def set_ledger_gauges(*, stakes_total: int, stakes_active: int, custody_balance: int) -> None:
    with _lock:
        _gauges["stakes_total"] = int(stakes_total)
        _gauges["stakes_active"] = int(stakes_active)
        _gauges["custody_balance"] = int(custody_balance)


def reset() -> None:
    with _lock:
        _counters.clear()
        _gauges.clear()


def snapshot() -> Dict[str, Any]:
    """JSON-friendly copy: counters keyed by name, then by rendered label set."""
    with _lock:
        counters: Dict[str, Dict[str, int]] = {}
        for (name, labels), v in _counters.items():
            counters.setdefault(name, {})[",".join(f"{k}={lv}" for k, lv in labels)] = v
        return {"counters": counters, "gauges": dict(_gauges)}


def _render_labels(labels: Labels) -> str:
    if not labels:
        return ""
    inner = ",".join('{}="{}"'.format(k, v.replace("\\", "\\\\").replace('"', '\\"')) for k, v in labels)
    return "{" + inner + "}"


def format_prometheus(prefix: str = "stakeledger_") -> str:
    """Prometheus text exposition for every family that has a sample."""
    pre = str(prefix or "").strip() or "stakeledger_"
    with _lock:
        counters = dict(_counters)
        gauges = dict(_gauges)

    lines: list[str] = []
    for name, (kind, help_text) in _FAMILIES.items():
        if kind == "counter":
            samples = sorted((labels, v) for (n, labels), v in counters.items() if n == name)
        else:
            samples = [((), gauges[name])] if name in gauges else []
        if not samples:
            continue
        lines.append(f"# HELP {pre}{name} {help_text}")
        lines.append(f"# TYPE {pre}{name} {kind}")
        for labels, v in samples:
            lines.append(f"{pre}{name}{_render_labels(labels)} {int(v)}")

    return "\n".join(lines) + "\n" if lines else ""
