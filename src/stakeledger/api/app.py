from __future__ import annotations

import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stakeledger.api.errors import ApiError, apply_error_body, apply_error_status
from stakeledger.api.routes_public import public_router
from stakeledger.api.structured_logging import RequestLogMiddleware
from stakeledger.runtime.engine_config import load_engine_config
from stakeledger.runtime.errors import ApplyError
from stakeledger.runtime.executor import build_executor as _build_executor


def build_executor():
    """Build a StakingExecutor for API runtime.

    This wrapper exists so tests can monkeypatch `stakeledger.api.app.build_executor`
    without reaching into runtime modules.
    """
    return _build_executor(load_engine_config())


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load engine config + attach executor
      - False: keep lightweight; callers attach app.state.executor themselves
    """
    mode = os.environ.get("STAKELEDGER_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(
            title="Stake Ledger API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )
    else:
        app = FastAPI(title="Stake Ledger API")

    if boot_runtime:
        app.state.executor = build_executor()
    else:
        app.state.executor = None

    @app.exception_handler(ApiError)
    async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    @app.exception_handler(ApplyError)
    async def _apply_error_handler(request: Request, exc: ApplyError) -> JSONResponse:
        return JSONResponse(status_code=apply_error_status(exc), content=apply_error_body(exc))

    # --- Middleware ---
    app.add_middleware(RequestLogMiddleware)

    # --- Routers ---
    app.include_router(public_router)

    return app
