# src/lprewards/seasons/rebalancer.py
from __future__ import annotations

from dataclasses import dataclass

import structlog

from lprewards.collaborators.protocols import RewardToken, SeasonBoundarySink
from lprewards.core.engine.clock import Clock
from lprewards.core.engine.state import AccrualState
from lprewards.core.math.fixed_point import PRECISION, add, descale, mul, sub

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class ClosedSeason:
    season_start: int
    season_end: int
    ended_at: int
    clawback_scaled: int
    forced: bool


@dataclass(frozen=True, slots=True)
class OpenedSeason:
    season_start: int
    season_end: int
    season_reward_scaled: int
    reward_per_event_scaled: int
    total_liquidity: int


@dataclass(frozen=True, slots=True)
class AdvanceResult:
    season_end: int
    rate_per_second: int  # token units, descaled once here

    closed: ClosedSeason | None = None
    opened: OpenedSeason | None = None

    @property
    def boundary_moved(self) -> bool:
        return self.closed is not None or self.opened is not None


class EpochRebalancer:
    """
    Season state machine.

    States:
      - Idle:   season_end == 0
      - Active: season_end != 0, accumulator advances with time

    advance() runs on every liquidity change or claim:
      1. accrue elapsed time into reward_per_share_stored, dividing by the total
         liquidity recorded at the PREVIOUS call (one-step lag)
      2. close the season if it is over / forced / liquidity is gone,
         and open the next one from any unreserved reward-token balance

    All changes are made on a working copy and written back at the end,
    so a failing advance leaves the shared state untouched.
    """

    def __init__(
        self,
        *,
        state: AccrualState,
        token: RewardToken,
        clock: Clock,
        sink: SeasonBoundarySink | None = None,
    ) -> None:
        self._state = state
        self._token = token
        self._clock = clock
        self._sink = sink

    def advance(
        self,
        *,
        current_total_liquidity: int,
        inhibit_accrual: bool = False,
        force_reset: bool = False,
        notify: bool = True,
    ) -> AdvanceResult:
        if current_total_liquidity < 0:
            raise ValueError("current_total_liquidity must be >= 0")

        now = self._clock()
        w = self._state.snapshot()

        # --- Step 1: accrue ---------------------------------------------
        if w.is_active and not inhibit_accrual:
            capped_now = min(now, w.season_end)
            if w.previous_total_liquidity != 0:
                elapsed = sub(capped_now, max(w.last_accrual_time, w.season_start))
                growth = mul(elapsed, w.reward_per_event_scaled) // w.previous_total_liquidity
                w.reward_per_share_stored = add(w.reward_per_share_stored, growth)
                w.last_accrual_time = capped_now

        w.previous_total_liquidity = current_total_liquidity

        # --- Step 2: season boundary ----------------------------------------
        if not (force_reset or now >= w.season_end or current_total_liquidity == 0):
            self._state.restore(w)
            return AdvanceResult(season_end=w.season_end, rate_per_second=descale(w.reward_per_event_scaled))

        closed: ClosedSeason | None = None
        if w.is_active:
            clawback = 0
            if w.season_end > now:
                clawback = mul(w.season_end - now, w.reward_per_event_scaled)
                w.reserved_balance_scaled = sub(w.reserved_balance_scaled, clawback)
            closed = ClosedSeason(
                season_start=w.season_start,
                season_end=w.season_end,
                ended_at=now,
                clawback_scaled=clawback,
                forced=force_reset,
            )

        w.last_accrual_time = 0
        w.season_start = 0
        w.season_end = 0
        w.reward_per_event_scaled = 0

        opened: OpenedSeason | None = None
        season_reward = self._available_reward(w, force_reset=force_reset)
        if season_reward > 0 and current_total_liquidity != 0:
            interval = w.season_interval_seconds
            if interval <= 0:
                raise ValueError("season interval must be at least one time slot")

            w.season_start = now
            w.reserved_balance_scaled = add(w.reserved_balance_scaled, season_reward)
            w.season_end = add(now, interval)
            # remainder of the division stays inside the reserve
            w.reward_per_event_scaled = season_reward // interval

            opened = OpenedSeason(
                season_start=w.season_start,
                season_end=w.season_end,
                season_reward_scaled=season_reward,
                reward_per_event_scaled=w.reward_per_event_scaled,
                total_liquidity=current_total_liquidity,
            )

        self._state.restore(w)

        if closed is not None:
            log.info(
                "season.ended",
                season_start=closed.season_start,
                season_end=closed.season_end,
                ended_at=now,
                clawback_scaled=closed.clawback_scaled,
                forced=force_reset,
            )
        if opened is not None:
            log.info(
                "season.started",
                season_start=opened.season_start,
                season_end=opened.season_end,
                rate_per_second=descale(opened.reward_per_event_scaled),
                total_liquidity=current_total_liquidity,
            )

        result = AdvanceResult(
            season_end=w.season_end,
            rate_per_second=descale(w.reward_per_event_scaled),
            closed=closed,
            opened=opened,
        )
        if notify and result.boundary_moved:
            self.notify_boundary(result.season_end)
        return result

    def calculate_available_reward(self, *, force_reset: bool = False) -> int:
        """
        Reward-token balance held beyond what is already reserved (scaled).

        Returns 0 while reset_only is set, unless this is an explicit reset.
        """
        return self._available_reward(self._state, force_reset=force_reset)

    def projected_reward_per_share(self, *, now: int | None = None) -> int:
        """
        Accumulator value an advance() at `now` would produce, without mutating anything.
        """
        s = self._state
        if now is None:
            now = self._clock()
        if not s.is_active or s.previous_total_liquidity == 0:
            return s.reward_per_share_stored

        capped_now = min(now, s.season_end)
        start = max(s.last_accrual_time, s.season_start)
        if capped_now <= start:
            return s.reward_per_share_stored

        growth = mul(capped_now - start, s.reward_per_event_scaled) // s.previous_total_liquidity
        return add(s.reward_per_share_stored, growth)

    def notify_boundary(self, season_end: int) -> None:
        """Tell the sink where the next season boundary is, unless suppressed."""
        if self._sink is None or self._state.suppress_external_notify:
            return
        self._sink.on_next_season_boundary(season_end)

    # --- Internal ---------------------------------------------------------

    def _available_reward(self, s: AccrualState, *, force_reset: bool) -> int:
        if s.reset_only and not force_reset:
            return 0
        return sub(mul(self._token.balance(), PRECISION), s.reserved_balance_scaled)
