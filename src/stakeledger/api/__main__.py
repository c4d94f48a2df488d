# src/stakeledger/api/__main__.py
from __future__ import annotations

import os

import uvicorn

from stakeledger.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so STAKELEDGER_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from stakeledger.api.app import create_app
    from stakeledger.api.structured_logging import configure_structured_logging
    from stakeledger.runtime.engine_config import apply_engine_config_to_env, load_engine_config

    cfg = load_engine_config()
    apply_engine_config_to_env(cfg)
    configure_structured_logging()
    host = os.getenv("STAKELEDGER_API_HOST", cfg.api_host)
    port = int(os.getenv("STAKELEDGER_API_PORT", str(cfg.api_port)))

    uvicorn.run(create_app(), host=host, port=port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
