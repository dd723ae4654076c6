from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence

import structlog

from lprewards.collaborators.protocols import LiquiditySource, Payout, RewardToken, SeasonBoundarySink
from lprewards.core.engine.clock import Clock, system_clock
from lprewards.core.engine.state import TIME_SLOT, AccrualState, quantize_interval
from lprewards.core.errors import AccrualError, ConfigError, TransferFailed
from lprewards.core.events.base import Event
from lprewards.core.events.bus import EventBus
from lprewards.core.events.rewards import (
    LiquidityChanged,
    PositionSettled,
    RewardClaimed,
    RewardTransferred,
    SeasonEnded,
    SeasonStarted,
)
from lprewards.core.events.system import EngineError
from lprewards.core.math.fixed_point import PRECISION, add, descale, mul, sub
from lprewards.distribution.splitter import RewardDistributor
from lprewards.ledger.positions import Position, PositionLedger
from lprewards.seasons.rebalancer import AdvanceResult, EpochRebalancer

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class SeasonInfo:
    active: bool
    season_start: int
    season_end: int
    rate_per_second: int
    reward_per_share_scaled: int
    reserved_balance_scaled: int
    total_liquidity: int
    reset_only: bool
    suppress_external_notify: bool


@dataclass(slots=True)
class _PendingOutput:
    """Side effects of an in-flight operation, released only on commit."""

    events: list[Event] = field(default_factory=list)
    boundaries: list[int] = field(default_factory=list)


class AccrualEngine:
    """
    Season-based reward-per-share accrual engine.

    Every public operation runs as one atomic unit:
      rebalance globally -> settle affected position(s) -> (claim) split + transfer

    Guarantees:
      - on any exception, global state and touched positions are rolled back
        and an EngineError event is published; the exception propagates
      - ledgers are debited BEFORE the token collaborator is called, so a
        reentrant claim sees nothing left to pay
      - events and season-boundary notifications are buffered and released
        only after the operation commits
      - a claim pays all receivers in one batch, so it either pays everyone or no one
    """

    def __init__(
        self,
        *,
        bus: EventBus,
        token: RewardToken,
        season_interval_seconds: int,
        clock: Clock = system_clock,
        liquidity_source: Optional[LiquiditySource] = None,
        sink: Optional[SeasonBoundarySink] = None,
        reset_only: bool = False,
        suppress_external_notify: bool = False,
    ) -> None:
        interval = quantize_interval(season_interval_seconds)
        if interval < TIME_SLOT:
            raise ConfigError(f"season interval must be >= {TIME_SLOT}s, got {season_interval_seconds}")

        self._bus = bus
        self._token = token
        self._clock = clock
        self._liquidity_source = liquidity_source

        self._state = AccrualState(
            season_interval_slots=interval // TIME_SLOT,
            reset_only=reset_only,
            suppress_external_notify=suppress_external_notify,
        )
        self._ledger = PositionLedger(state=self._state)
        self._rebalancer = EpochRebalancer(state=self._state, token=token, clock=clock, sink=sink)
        self._distributor = RewardDistributor()

        # one buffer per in-flight operation (reentrant calls nest)
        self._pending: list[_PendingOutput] = []

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def state(self) -> AccrualState:
        return self._state

    @property
    def ledger(self) -> PositionLedger:
        return self._ledger

    @property
    def rebalancer(self) -> EpochRebalancer:
        return self._rebalancer

    # --- Operations ---------------------------------------------------------

    def on_liquidity_change(
        self,
        *,
        from_account: str | None,
        to_account: str | None,
        from_balance_after: int = 0,
        to_balance_after: int = 0,
        total_liquidity_after: int,
        notify: bool = True,
    ) -> AdvanceResult:
        """
        Settle both sides of a liquidity movement.

        from_account=None is a mint (participant entry), to_account=None a burn.
        Balances are the values AFTER the change; settlement uses the balances
        recorded at each side's previous touch.
        """
        if from_account is None and to_account is None:
            raise ValueError("at least one of from_account/to_account is required")
        if min(from_balance_after, to_balance_after, total_liquidity_after) < 0:
            raise ValueError("liquidity amounts must be >= 0")

        with self._operation("liquidity_change"):
            # a brand-new position cannot have earned anything before it existed
            entry = from_account is None and self._ledger.peek(to_account).is_fresh

            result = self._advance(
                total_liquidity=total_liquidity_after,
                inhibit_accrual=entry,
                notify=notify,
            )

            if from_account is not None:
                self._settle(from_account, balance=from_balance_after)
            if to_account is not None:
                self._settle(to_account, balance=to_balance_after)

            if self._liquidity_source is None:
                self._state.total_liquidity = total_liquidity_after

            self._emit(
                LiquidityChanged,
                from_account=from_account,
                to_account=to_account,
                from_balance_after=from_balance_after,
                to_balance_after=to_balance_after,
                total_liquidity_after=total_liquidity_after,
            )

        return result

    def on_claim(
        self,
        *,
        account: str,
        receivers: Sequence[str | None] | None = None,
        percentages: Sequence[int] = (),
        notify: bool = True,
    ) -> int:
        """
        Pay out everything `account` has earned, split across receivers.

        Returns the claimed amount in token units (0 when nothing is payable).
        """
        if receivers is None:
            receivers = [account]

        with self._operation("claim"):
            self._distributor.validate(receivers, percentages)

            self._advance(total_liquidity=self._current_total_liquidity(), notify=notify)
            pos = self._settle(account, balance=self._current_balance(account))

            amount = descale(pos.unclaimed_reward_scaled)
            if amount == 0:
                return 0

            parts = self._distributor.split(amount, receivers, percentages)

            # debit ledgers first: anything re-entering from transfer() sees them already reduced
            paid_scaled = mul(amount, PRECISION)
            pos.unclaimed_reward_scaled = sub(pos.unclaimed_reward_scaled, paid_scaled)
            self._state.reserved_balance_scaled = sub(self._state.reserved_balance_scaled, paid_scaled)
            self._emit(RewardClaimed, account=account, amount=amount)

            log.info("reward.claimed", account=account, amount=amount, receivers=len(receivers))

            # one all-or-nothing batch: a refused receiver must not leave earlier parts paid
            payouts = [(receiver, part) for receiver, part in zip(receivers, parts) if part != 0]
            self._transfer(payouts)
            for receiver, part in payouts:
                self._emit(RewardTransferred, account=account, receiver=receiver, amount=part)

        return amount

    def sync(self, *, notify: bool = True) -> AdvanceResult:
        """
        Plain rebalance with the current total liquidity.

        The season-boundary sink calls this with notify=False (no self-notification).
        """
        with self._operation("sync"):
            result = self._advance(total_liquidity=self._current_total_liquidity(), notify=notify)
        return result

    def reset_season(self, *, notify: bool = True) -> AdvanceResult:
        """Explicit reset: ends the running season and starts the next, even while reset_only is set."""
        with self._operation("reset_season"):
            result = self._advance(
                total_liquidity=self._current_total_liquidity(),
                force_reset=True,
                notify=notify,
            )
        return result

    def set_reset_only(self, flag: bool) -> None:
        self._state.reset_only = flag
        log.info("engine.reset_only_set", reset_only=flag)

    def set_suppress_external_notify(self, flag: bool) -> None:
        self._state.suppress_external_notify = flag
        log.info("engine.suppress_external_notify_set", suppress_external_notify=flag)

    # --- Views -----------------------------------------------------------------

    def pending_reward(self, account: str) -> int:
        """Token units `account` could claim right now (accrual projected up to now)."""
        pos = self._ledger.peek(account)
        rps = self._rebalancer.projected_reward_per_share()
        accrued = mul(sub(rps, pos.reward_per_share_checkpoint), pos.last_liquidity_balance)
        return descale(add(pos.unclaimed_reward_scaled, accrued))

    def position(self, account: str) -> Position:
        return self._ledger.peek(account)

    def season_info(self) -> SeasonInfo:
        s = self._state
        return SeasonInfo(
            active=s.is_active,
            season_start=s.season_start,
            season_end=s.season_end,
            rate_per_second=descale(s.reward_per_event_scaled),
            reward_per_share_scaled=s.reward_per_share_stored,
            reserved_balance_scaled=s.reserved_balance_scaled,
            total_liquidity=self._current_total_liquidity(),
            reset_only=s.reset_only,
            suppress_external_notify=s.suppress_external_notify,
        )

    # --- Internal ----------------------------------------------------------------

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        snap = self._state.snapshot()
        self._ledger.begin()
        self._pending.append(_PendingOutput())

        try:
            yield
        except Exception as exc:
            self._ledger.rollback()
            # sequence stays where it is: nested operations may already have published
            self._state.restore(snap, keep_sequence=True)
            self._pending.pop()

            log.exception("engine.operation_failed", operation=name)
            self._bus.publish(
                EngineError.create(
                    operation=name,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                    sequence=self._state.next_sequence(),
                )
            )
            raise

        self._ledger.commit()
        out = self._pending.pop()
        for event in out.events:
            self._bus.publish(event)
        for boundary in out.boundaries:
            self._rebalancer.notify_boundary(boundary)

    def _emit(self, cls: type[Event], **fields: Any) -> None:
        self._pending[-1].events.append(cls.create(sequence=self._state.next_sequence(), **fields))

    def _advance(
        self,
        *,
        total_liquidity: int,
        inhibit_accrual: bool = False,
        force_reset: bool = False,
        notify: bool = True,
    ) -> AdvanceResult:
        # the sink hears about a boundary only once the operation has committed
        result = self._rebalancer.advance(
            current_total_liquidity=total_liquidity,
            inhibit_accrual=inhibit_accrual,
            force_reset=force_reset,
            notify=False,
        )
        if notify and result.boundary_moved:
            self._pending[-1].boundaries.append(result.season_end)

        if result.closed is not None:
            c = result.closed
            self._emit(
                SeasonEnded,
                season_start=c.season_start,
                season_end=c.season_end,
                ended_at=c.ended_at,
                clawback_scaled=c.clawback_scaled,
                forced=c.forced,
            )
        if result.opened is not None:
            o = result.opened
            self._emit(
                SeasonStarted,
                season_start=o.season_start,
                season_end=o.season_end,
                season_reward_scaled=o.season_reward_scaled,
                reward_per_event_scaled=o.reward_per_event_scaled,
                total_liquidity=o.total_liquidity,
            )
        return result

    def _settle(self, account: str, *, balance: int) -> Position:
        pos = self._ledger.touch(account)
        accrued = self._ledger.settle(pos, current_liquidity_balance=balance)
        self._emit(
            PositionSettled,
            account=account,
            accrued_scaled=accrued,
            unclaimed_scaled=pos.unclaimed_reward_scaled,
            liquidity_balance=balance,
        )
        return pos

    def _transfer(self, payouts: list[Payout]) -> None:
        receivers = tuple(to for to, _ in payouts)
        amount = sum(part for _, part in payouts)
        try:
            ok = self._token.transfer_batch(payouts=payouts)
        except AccrualError:
            raise
        except Exception as exc:
            raise TransferFailed(receivers=receivers, amount=amount, reason=f"{type(exc).__name__}: {exc}") from exc
        if not ok:
            raise TransferFailed(receivers=receivers, amount=amount)

    def _current_total_liquidity(self) -> int:
        if self._liquidity_source is not None:
            return self._liquidity_source.total_liquidity()
        return self._state.total_liquidity

    def _current_balance(self, account: str) -> int:
        if self._liquidity_source is not None:
            return self._liquidity_source.balance_of(account)
        return self._ledger.peek(account).last_liquidity_balance
