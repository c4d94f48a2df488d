from __future__ import annotations

from stakeledger.ledger.constants import DAY_SECONDS


class ManualClock:
    """Deterministic clock for tests: a callable returning seconds.

    Pass an instance as `StakingExecutor(clock=...)` and advance it between
    submissions.
    """

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = int(start)

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += int(seconds)
        return self.now

    def advance_days(self, days: int) -> int:
        return self.advance(int(days) * DAY_SECONDS)
