# src/lprewards/ledger/positions.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterator

import structlog

from lprewards.core.engine.state import AccrualState
from lprewards.core.math.fixed_point import add, mul, sub

log = structlog.get_logger()


@dataclass(slots=True)
class Position:
    account: str
    unclaimed_reward_scaled: int = 0        # earned, not yet paid (x PRECISION)
    reward_per_share_checkpoint: int = 0    # accumulator at last settlement
    last_liquidity_balance: int = 0         # liquidity at last settlement

    @property
    def is_fresh(self) -> bool:
        return self.last_liquidity_balance == 0


class PositionLedger:
    """
    Lazy per-account settlement against the global reward-per-share accumulator.

    Positions are created on first touch and never deleted.

    Journaling:
      - begin() opens a journal; the first touch of an account inside it records
        the account's pre-operation copy (or absence)
      - rollback() restores those copies, commit() drops the journal
      - journals nest so a reentrant operation can fail without undoing the outer one
    """

    def __init__(self, *, state: AccrualState) -> None:
        self._state = state
        self._positions: dict[str, Position] = {}
        self._journals: list[dict[str, Position | None]] = []

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[Position]:
        return iter(self._positions.values())

    def get(self, account: str) -> Position | None:
        return self._positions.get(account)

    def peek(self, account: str) -> Position:
        """Read-only view; untouched accounts read as a zeroed position."""
        pos = self._positions.get(account)
        return replace(pos) if pos is not None else Position(account=account)

    def touch(self, account: str) -> Position:
        self._record(account)
        pos = self._positions.get(account)
        if pos is None:
            pos = Position(account=account)
            self._positions[account] = pos
        return pos

    def settle(self, position: Position, *, current_liquidity_balance: int) -> int:
        """
        Apply accumulator growth since the position's checkpoint to its unclaimed balance,
        then checkpoint the accumulator and the caller-supplied liquidity balance.

        Returns the accrued delta (scaled).
        """
        self._record(position.account)

        rps = self._state.reward_per_share_stored
        accrued = mul(sub(rps, position.reward_per_share_checkpoint), position.last_liquidity_balance)

        position.unclaimed_reward_scaled = add(position.unclaimed_reward_scaled, accrued)
        position.reward_per_share_checkpoint = rps
        position.last_liquidity_balance = current_liquidity_balance

        log.debug(
            "position.settled",
            account=position.account,
            accrued_scaled=accrued,
            unclaimed_scaled=position.unclaimed_reward_scaled,
            liquidity=current_liquidity_balance,
        )
        return accrued

    def total_unclaimed_scaled(self) -> int:
        total = 0
        for pos in self._positions.values():
            total = add(total, pos.unclaimed_reward_scaled)
        return total

    # --- Journaling --------------------------------------------------------

    def begin(self) -> None:
        self._journals.append({})

    def commit(self) -> None:
        if not self._journals:
            raise RuntimeError("commit without begin")
        self._journals.pop()

    def rollback(self) -> None:
        if not self._journals:
            raise RuntimeError("rollback without begin")
        journal = self._journals.pop()
        for account, before in journal.items():
            if before is None:
                self._positions.pop(account, None)
                continue
            cur = self._positions.get(account)
            if cur is None:
                self._positions[account] = before
                continue
            # restore in place: callers may still hold the live object
            cur.unclaimed_reward_scaled = before.unclaimed_reward_scaled
            cur.reward_per_share_checkpoint = before.reward_per_share_checkpoint
            cur.last_liquidity_balance = before.last_liquidity_balance

    def _record(self, account: str) -> None:
        if not self._journals:
            return
        before: Position | None = None
        cur = self._positions.get(account)
        if cur is not None:
            before = replace(cur)
        for journal in self._journals:
            if account not in journal:
                journal[account] = before
