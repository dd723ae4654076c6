from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from lprewards.core.pool.artifacts import PoolArtifacts, artifacts_for
from lprewards.core.pool.assembly import PoolHandle, build_pool
from lprewards.core.pool.spec import PoolSpec

log = structlog.get_logger()


def _write_json_atomic(path: Path, payload: Any) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False) + "\n", encoding="utf-8")
    tmp.replace(path)


class PoolFactory:
    """
    Pool builder.

    Responsibilities:
    - load/persist PoolSpec (pool.json); a persisted spec is never overwritten
      with a different one (configuration is one-time)
    - build PoolHandle through canonical assembly
    - write wiring snapshot (meta.json) for audit
    """

    def __init__(self, *, data_dir: Path):
        self.data_dir = data_dir

    def load_spec(self, *, pool_id: str) -> PoolSpec | None:
        art = artifacts_for(data_dir=self.data_dir, pool_id=pool_id)
        if not art.pool_json.exists():
            return None

        data = json.loads(art.pool_json.read_text(encoding="utf-8"))
        return PoolSpec.model_validate(data)

    def save_spec(self, *, spec: PoolSpec) -> None:
        existing = self.load_spec(pool_id=spec.pool_id)
        if existing is not None and existing.config_hash() != spec.config_hash():
            raise ValueError(f"pool {spec.pool_id!r} is already configured with a different spec")

        art = artifacts_for(data_dir=self.data_dir, pool_id=spec.pool_id)
        art.ensure_dirs()
        _write_json_atomic(art.pool_json, spec.to_canonical_dict())

    def build(self, *, spec: PoolSpec, **collaborators: Any) -> PoolHandle:
        """
        Persist spec -> canonical assembly -> wiring snapshot.

        collaborators are forwarded to build_pool (clock, token, liquidity_source, sink, ...).
        """
        self.save_spec(spec=spec)

        handle = build_pool(data_dir=self.data_dir, spec=spec, **collaborators)
        self._write_wiring_snapshot(art=handle.artifacts, handle=handle)
        return handle

    def _write_wiring_snapshot(self, *, art: PoolArtifacts, handle: PoolHandle) -> None:
        components = [{"type": type(c).__name__, "module": type(c).__module__} for c in handle.components]

        snapshot: dict[str, Any] = {
            "pool_id": handle.pool_id,
            "spec_hash": handle.spec.config_hash(),
            "reward_token": handle.spec.reward_token,
            "liquidity_source": handle.spec.liquidity_source,
            "season_interval_seconds": handle.engine.state.season_interval_seconds,
            "components": components,
            "router_wiring": handle.wiring.to_dict(),
        }
        _write_json_atomic(art.meta_json, snapshot)

        log.info("pool.wiring_snapshot_written", pool_id=handle.pool_id, spec_hash=snapshot["spec_hash"])
