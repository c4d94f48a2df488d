# src/stakeledger/api/structured_logging.py
from __future__ import annotations

import json
import logging
import os
import time
import uuid
from typing import Any, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from stakeledger.runtime.engine_logging import log_event

Json = Dict[str, Any]


class JsonLineFormatter(logging.Formatter):
    """Pass log_event() lines through; wrap anything else (uvicorn, libraries) as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if msg.startswith("{") and msg.endswith("}"):
            return msg
        payload: Json = {
            "ts_ms": int(record.created * 1000),
            "event": "log",
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": msg,
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def configure_structured_logging() -> None:
    """Route the root logger to stdout as JSONL at STAKELEDGER_LOG_LEVEL (default INFO)."""
    level_name = (os.environ.get("STAKELEDGER_LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, JsonLineFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLineFormatter())
    root.handlers = [handler]


def note_tx_outcome(request: Request, *, tx_type: str, code: str, reason: str = "") -> None:
    """Attach the outcome of a tx submission so the request log line carries it."""
    request.state.tx_outcome = {"tx_type": tx_type, "code": code, "reason": reason}


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` line per request on logger stakeledger.http.

    STAKELEDGER_LOG_REQUESTS=0 disables it. The x-request-id header is echoed
    back (or minted). Tx submissions add their tx_type and result code.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("STAKELEDGER_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in {"0", "false", "no", "n", "off"}
        self._logger = logging.getLogger("stakeledger.http")

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        started = time.monotonic()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id

        fields: Json = {"request_id": request_id, "method": request.method, "path": request.url.path}
        try:
            response = await call_next(request)
        except Exception as e:
            log_event(
                self._logger,
                "http_request",
                level=logging.ERROR,
                status=500,
                error=type(e).__name__,
                duration_ms=int((time.monotonic() - started) * 1000),
                **fields,
            )
            raise

        outcome = getattr(request.state, "tx_outcome", None)
        if outcome:
            fields["tx"] = outcome
        log_event(
            self._logger,
            "http_request",
            status=response.status_code,
            duration_ms=int((time.monotonic() - started) * 1000),
            **fields,
        )
        response.headers.setdefault("x-request-id", request_id)
        return response


__all__ = ["JsonLineFormatter", "RequestLogMiddleware", "configure_structured_logging", "note_tx_outcome"]
