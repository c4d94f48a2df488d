# src/stakeledger/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from stakeledger.api.routes_public_parts.events import router as events_router
from stakeledger.api.routes_public_parts.health import router as health_router
from stakeledger.api.routes_public_parts.metrics import router as metrics_router
from stakeledger.api.routes_public_parts.params import router as params_router
from stakeledger.api.routes_public_parts.rewards import router as rewards_router
from stakeledger.api.routes_public_parts.stakes import router as stakes_router
from stakeledger.api.routes_public_parts.tokens import router as tokens_router
from stakeledger.api.routes_public_parts.tx import router as tx_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(params_router, prefix="/v1", tags=["params"])
public_router.include_router(stakes_router, prefix="/v1", tags=["stakes"])
public_router.include_router(rewards_router, prefix="/v1", tags=["rewards"])
public_router.include_router(tokens_router, prefix="/v1", tags=["tokens"])
public_router.include_router(events_router, prefix="/v1", tags=["events"])
public_router.include_router(tx_router, prefix="/v1", tags=["tx"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
