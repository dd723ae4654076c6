from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from lprewards.core.engine.clock import ManualClock
from lprewards.core.pool.factory import PoolFactory
from lprewards.core.pool.spec import PoolSpec


def test_pool_spec_quantizes_interval_and_hashes_deterministically() -> None:
    spec = PoolSpec(pool_id="p1", season_interval_seconds=100)

    assert spec.season_interval_seconds == 90
    assert spec.config_hash() == PoolSpec.model_validate(spec.to_canonical_dict()).config_hash()


@pytest.mark.parametrize("seconds", [0, 14, -15])
def test_pool_spec_rejects_sub_slot_intervals(seconds: int) -> None:
    with pytest.raises(ValidationError):
        PoolSpec(season_interval_seconds=seconds)


def test_factory_persists_spec_and_event_log(tmp_path: Path) -> None:
    clock = ManualClock(now=10_000)
    factory = PoolFactory(data_dir=tmp_path)
    spec = PoolSpec(pool_id="p1", season_interval_seconds=150)

    handle = factory.build(spec=spec, clock=clock, fsync=False)
    handle.token.fund(1_000)

    handle.engine.on_liquidity_change(from_account=None, to_account="alice", to_balance_after=10, total_liquidity_after=10)
    clock.advance(150)
    claimed = handle.engine.on_claim(account="alice")
    handle.event_store.close()

    assert claimed > 0

    # spec round-trips
    loaded = factory.load_spec(pool_id="p1")
    assert loaded is not None
    assert loaded.config_hash() == spec.config_hash()

    # wiring snapshot
    meta = json.loads(handle.artifacts.meta_json.read_text(encoding="utf-8"))
    assert meta["spec_hash"] == spec.config_hash()
    assert meta["season_interval_seconds"] == 150
    assert meta["components"][0]["type"] == "EventLogComponent"

    # every committed event lands in events.jsonl, in sequence order
    events = handle.event_store.iter_events()
    types = [e["event_type"] for e in events]
    assert "season.started" in types
    assert "position.settled" in types
    assert "reward.claimed" in types
    assert "reward.transferred" in types
    seqs = [e["sequence"] for e in events]
    assert seqs == sorted(seqs)

    started = next(e for e in events if e["event_type"] == "season.started")
    assert started["season_reward_scaled"] == 1_000 * 10**18


def test_spec_is_one_time_configuration(tmp_path: Path) -> None:
    factory = PoolFactory(data_dir=tmp_path)
    factory.save_spec(spec=PoolSpec(pool_id="p1", season_interval_seconds=150))

    with pytest.raises(ValueError):
        factory.save_spec(spec=PoolSpec(pool_id="p1", season_interval_seconds=300))


def test_rolled_back_operations_only_log_the_error(tmp_path: Path) -> None:
    clock = ManualClock(now=10_000)
    handle = PoolFactory(data_dir=tmp_path).build(spec=PoolSpec(pool_id="p2", season_interval_seconds=150), clock=clock, fsync=False)
    handle.token.fund(1_000)
    handle.engine.on_liquidity_change(from_account=None, to_account="alice", to_balance_after=10, total_liquidity_after=10)
    clock.advance(150)
    handle.token.blocked.add("alice")

    before = len(handle.event_store.iter_events())
    with pytest.raises(Exception):
        handle.engine.on_claim(account="alice")
    handle.event_store.close()

    after = handle.event_store.iter_events()[before:]
    assert [e["event_type"] for e in after] == ["system.engine_error"]
    assert after[0]["error_type"] == "TransferFailed"
