from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

_POOL_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


def validate_pool_id(pool_id: str) -> None:
    if not pool_id or not _POOL_ID_RE.match(pool_id):
        raise ValueError(f"invalid pool_id: {pool_id!r}")


@dataclass(frozen=True, slots=True)
class PoolArtifacts:
    """
    Stable file layout for one pool under the data directory.
    """
    pool_dir: Path

    @property
    def pool_json(self) -> Path:
        return self.pool_dir / "pool.json"

    @property
    def meta_json(self) -> Path:
        return self.pool_dir / "meta.json"

    @property
    def events_jsonl(self) -> Path:
        return self.pool_dir / "events.jsonl"

    def ensure_dirs(self) -> None:
        self.pool_dir.mkdir(parents=True, exist_ok=True)


def artifacts_for(*, data_dir: Path, pool_id: str) -> PoolArtifacts:
    validate_pool_id(pool_id)
    pool_dir = (data_dir / pool_id).resolve()

    base = data_dir.resolve()
    if base not in pool_dir.parents:
        raise ValueError("invalid pool_dir resolution")

    return PoolArtifacts(pool_dir=pool_dir)
