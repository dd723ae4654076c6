# src/lprewards/core/events/rewards.py
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from lprewards.core.events.base import Event


@dataclass(frozen=True, slots=True)
class SeasonStarted(Event):
    """
    A new season was opened with freshly reserved reward.
    """
    event_type: ClassVar[str] = "season.started"

    season_start: int
    season_end: int

    # scaled (x PRECISION)
    season_reward_scaled: int
    reward_per_event_scaled: int

    total_liquidity: int


@dataclass(frozen=True, slots=True)
class SeasonEnded(Event):
    """
    The running season was closed (naturally, by reset, or because liquidity drained).
    """
    event_type: ClassVar[str] = "season.ended"

    season_start: int
    season_end: int
    ended_at: int

    # unearned tail returned to the unreserved balance (scaled), 0 on natural end
    clawback_scaled: int
    forced: bool


@dataclass(frozen=True, slots=True)
class LiquidityChanged(Event):
    event_type: ClassVar[str] = "liquidity.changed"

    from_account: str | None
    to_account: str | None
    from_balance_after: int
    to_balance_after: int
    total_liquidity_after: int


@dataclass(frozen=True, slots=True)
class PositionSettled(Event):
    event_type: ClassVar[str] = "position.settled"

    account: str
    accrued_scaled: int
    unclaimed_scaled: int
    liquidity_balance: int


@dataclass(frozen=True, slots=True)
class RewardClaimed(Event):
    """
    Ledgers were debited for a payout (before any transfer happened).
    """
    event_type: ClassVar[str] = "reward.claimed"

    account: str
    amount: int


@dataclass(frozen=True, slots=True)
class RewardTransferred(Event):
    event_type: ClassVar[str] = "reward.transferred"

    account: str
    receiver: str | None  # None = burn
    amount: int
