# src/stakeledger/ledger/constants.py
from __future__ import annotations

"""Staking engine constants.

Anchors:
- Token precision: 18 decimals
- Lock buckets: 30 / 60 / 90 days, monthly compounding
- Rates are monthly basis points (10_000 = 100%)
- Interest pool split per bucket: 40% / 35% / 25%
- Developer fee on gross reward: 5% (not governance configurable)
"""

from typing import Dict, Tuple

# Monetary precision (1 token = 1e18 base units)
COIN_DECIMALS: int = 18
COIN: int = 10**COIN_DECIMALS

DAY_SECONDS: int = 24 * 60 * 60
MONTH_SECONDS: int = 30 * DAY_SECONDS

DURATION_30_DAYS: int = 30 * DAY_SECONDS
DURATION_60_DAYS: int = 60 * DAY_SECONDS
DURATION_90_DAYS: int = 90 * DAY_SECONDS

STAKING_DURATIONS: Tuple[int, ...] = (DURATION_30_DAYS, DURATION_60_DAYS, DURATION_90_DAYS)

BPS_DENOMINATOR: int = 10_000

# Share of interest_pool (percent) payable to a single stake of each bucket.
POOL_SHARE_PERCENT: Dict[int, int] = {
    DURATION_30_DAYS: 40,
    DURATION_60_DAYS: 35,
    DURATION_90_DAYS: 25,
}

DEVELOPER_FEE_PERCENT: int = 5
MAX_EARLY_WITHDRAWAL_PENALTY_PERCENT: int = 50

# Genesis defaults
DEFAULT_STAKING_RATE_30: int = 125  # 1.25% / month
DEFAULT_STAKING_RATE_60: int = 150  # 1.50% / month
DEFAULT_STAKING_RATE_90: int = 200  # 2.00% / month
DEFAULT_EARLY_WITHDRAWAL_PENALTY_PERCENT: int = 20
DEFAULT_INTEREST_POOL: int = 100_000_000 * COIN

# Largest stakes whose full-term reward still fits the bucket's pool share at default rates.
MAX_STAKE_30: int = 3_160_493_827 * COIN
MAX_STAKE_60: int = 1_157_981_803 * COIN
MAX_STAKE_90: int = 408_443_340 * COIN

ZERO_ADDRESS: str = "0x0000000000000000000000000000000000000000"

# Canonical custody account id inside the token ledger
DEFAULT_ENGINE_ADDRESS: str = "0x5354414b454c45444745520000000000000000ee"
