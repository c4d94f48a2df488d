from __future__ import annotations

from fastapi import APIRouter, Query, Response
from fastapi.responses import JSONResponse

from stakeledger.runtime import metrics as engine_metrics

router = APIRouter()

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


@router.get("/metrics")
def metrics(format: str = Query(default="prometheus")) -> Response:
    """Executor counters (tx outcomes, events, payouts) and ledger gauges.

    Off unless STAKELEDGER_METRICS_ENABLED=1. `?format=json` returns the raw snapshot.
    """
    if not engine_metrics.metrics_enabled():
        return Response(status_code=404, content="not_found\n", media_type="text/plain")
    if format.strip().lower() == "json":
        return JSONResponse(content={"ok": True, **engine_metrics.snapshot()})
    return Response(content=engine_metrics.format_prometheus(), media_type=PROMETHEUS_CONTENT_TYPE)
