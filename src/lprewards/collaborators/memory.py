from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Sequence

import structlog

from lprewards.collaborators.protocols import Payout

log = structlog.get_logger()

DEAD_ACCOUNT = "0x000000000000000000000000000000000000dEaD"

TransferHook = Callable[[str | None, int], None]


class InMemoryRewardToken:
    """
    Reward token ledger for a single process.

    The engine's own holdings live under `holder`.

    Burn (to=None) tries, in order:
      1. a native burn (only if `burnable`)
      2. a transfer to DEAD_ACCOUNT (unless that account is blocked)

    A batch is checked as a whole before anything moves, so a refused payout
    leaves every balance untouched.

    `on_transfer` runs once per payout after the whole batch moved; tests use it
    to re-enter the engine.
    """

    def __init__(
        self,
        *,
        holder: str = "engine",
        burnable: bool = True,
        on_transfer: TransferHook | None = None,
    ) -> None:
        self.holder = holder
        self.burnable = burnable
        self.on_transfer = on_transfer

        self.total_supply = 0
        self.burned = 0
        self._balances: dict[str, int] = {}

        # accounts whose incoming transfers are refused (simulates reverting receivers)
        self.blocked: set[str] = set()

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def balance(self) -> int:
        return self.balance_of(self.holder)

    def mint(self, *, to: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be >= 0")
        self._balances[to] = self.balance_of(to) + amount
        self.total_supply += amount

    def fund(self, amount: int) -> None:
        """Deposit new reward into the engine's holdings."""
        self.mint(to=self.holder, amount=amount)

    def transfer(self, *, to: str | None, amount: int) -> bool:
        return self.transfer_batch(payouts=[(to, amount)])

    def transfer_batch(self, *, payouts: Sequence[Payout]) -> bool:
        reason = self._rejection(payouts)
        if reason is not None:
            log.warning("token.transfer_rejected", reason=reason, payouts=len(payouts))
            return False

        for to, amount in payouts:
            if to is None:
                self._burn(amount)
            else:
                self._move(to=to, amount=amount)

        if self.on_transfer is not None:
            for to, amount in payouts:
                self.on_transfer(to, amount)
        return True

    def _rejection(self, payouts: Sequence[Payout]) -> str | None:
        if any(amount < 0 for _, amount in payouts):
            return "negative amount"
        if sum(amount for _, amount in payouts) > self.balance():
            return "insufficient balance"
        for to, _ in payouts:
            if to is None:
                if not self.burnable and DEAD_ACCOUNT in self.blocked:
                    return "burn unavailable"
            elif to in self.blocked:
                return f"receiver {to} refused"
        return None

    def _move(self, *, to: str, amount: int) -> None:
        self._balances[self.holder] = self.balance() - amount
        self._balances[to] = self.balance_of(to) + amount

    def _burn(self, amount: int) -> None:
        if self.burnable:
            self._balances[self.holder] = self.balance() - amount
            self.total_supply -= amount
        else:
            self._move(to=DEAD_ACCOUNT, amount=amount)
        self.burned += amount


@dataclass(slots=True)
class StaticLiquiditySource:
    """
    Externally-owned liquidity book. Tests and callers set balances directly.
    """
    balances: dict[str, int] = field(default_factory=dict)

    def set_balance(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be >= 0")
        self.balances[account] = amount

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def total_liquidity(self) -> int:
        return sum(self.balances.values())


@dataclass(slots=True)
class RecordingBoundarySink:
    boundaries: list[int] = field(default_factory=list)

    def on_next_season_boundary(self, timestamp: int) -> None:
        self.boundaries.append(timestamp)
