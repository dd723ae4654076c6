from __future__ import annotations

from typing import Protocol, Sequence

# (receiver, amount); receiver None is a burn
Payout = tuple[str | None, int]


class LiquiditySource(Protocol):
    """
    Upstream authority for liquidity balances when the engine is not its own source.
    """

    def total_liquidity(self) -> int:
        ...

    def balance_of(self, account: str) -> int:
        ...


class SeasonBoundarySink(Protocol):
    """
    Liquidity provider that wants to know when the current season ends.
    """

    def on_next_season_boundary(self, timestamp: int) -> None:
        ...


class RewardToken(Protocol):
    """
    Reward-token balance/transfer collaborator.

    - balance(): amount held by the engine (unscaled token units)
    - transfer(to=None, ...) is a burn; fallback strategies are the token's business,
      only overall success is reported
    - transfer_batch() is all-or-nothing: on False, no payout in the batch has moved
    """

    def balance(self) -> int:
        ...

    def transfer(self, *, to: str | None, amount: int) -> bool:
        ...

    def transfer_batch(self, *, payouts: Sequence[Payout]) -> bool:
        ...
