from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

import structlog

from lprewards.collaborators.memory import InMemoryRewardToken, RecordingBoundarySink, StaticLiquiditySource
from lprewards.collaborators.protocols import SeasonBoundarySink
from lprewards.core.engine.clock import Clock, system_clock
from lprewards.core.engine.engine import AccrualEngine
from lprewards.core.engine.router import EngineRouter, EventHandler, RouterWiring
from lprewards.core.events.base import Event
from lprewards.core.events.bus import ANY_EVENT, EventBus
from lprewards.core.pool.artifacts import PoolArtifacts, artifacts_for
from lprewards.core.pool.spec import PoolSpec
from lprewards.storage.jsonl import JsonlEventStore

log = structlog.get_logger()


@dataclass(slots=True)
class EventLogComponent:
    """
    Append-only persistence of every committed engine event to events.jsonl.
    """
    store: JsonlEventStore

    def subscriptions(self) -> Sequence[tuple[str, EventHandler]]:
        return [(ANY_EVENT, self._on_event)]

    def _on_event(self, e: Event) -> None:
        self.store.append(e)


@dataclass(frozen=True, slots=True)
class PoolHandle:
    """
    Canonical handle for a wired pool in this process.
    """
    pool_id: str
    spec: PoolSpec
    artifacts: PoolArtifacts
    bus: EventBus
    engine: AccrualEngine
    token: InMemoryRewardToken
    liquidity_source: StaticLiquiditySource | None
    sink: SeasonBoundarySink | None
    wiring: RouterWiring
    components: tuple[object, ...]
    event_store: JsonlEventStore


def build_pool(
    *,
    data_dir: Path,
    spec: PoolSpec,
    clock: Clock = system_clock,
    token: InMemoryRewardToken | None = None,
    liquidity_source: StaticLiquiditySource | None = None,
    sink: SeasonBoundarySink | None = None,
    fsync: bool = True,
    extra_components: Iterable[object] = (),
) -> PoolHandle:
    art = artifacts_for(data_dir=data_dir, pool_id=spec.pool_id)
    art.ensure_dirs()
    art.events_jsonl.touch(exist_ok=True)

    if token is None:
        token = InMemoryRewardToken(holder=spec.engine_account)
    elif token.holder != spec.engine_account:
        raise ValueError(f"token.holder={token.holder!r} must match engine_account={spec.engine_account!r}")

    if spec.liquidity_source == "external" and liquidity_source is None:
        liquidity_source = StaticLiquiditySource()
    if spec.liquidity_source == "self":
        liquidity_source = None

    if sink is None:
        sink = RecordingBoundarySink()

    bus = EventBus()
    engine = AccrualEngine(
        bus=bus,
        token=token,
        season_interval_seconds=spec.season_interval_seconds,
        clock=clock,
        liquidity_source=liquidity_source,
        sink=sink,
        reset_only=spec.reset_only,
        suppress_external_notify=spec.suppress_external_notify,
    )

    event_store = JsonlEventStore(path=art.events_jsonl, fsync=fsync)
    components: list[object] = [EventLogComponent(store=event_store), *extra_components]
    wiring = EngineRouter(bus=bus).register(components)

    log.info(
        "pool.assembled",
        pool_id=spec.pool_id,
        reward_token=spec.reward_token,
        liquidity_source=spec.liquidity_source,
        season_interval_seconds=spec.season_interval_seconds,
        components=[type(c).__name__ for c in components],
        pool_dir=str(art.pool_dir),
    )

    return PoolHandle(
        pool_id=spec.pool_id,
        spec=spec,
        artifacts=art,
        bus=bus,
        engine=engine,
        token=token,
        liquidity_source=liquidity_source,
        sink=sink,
        wiring=wiring,
        components=tuple(components),
        event_store=event_store,
    )
