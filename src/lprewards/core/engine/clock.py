from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

# Seconds since epoch, integer (block-timestamp style).
Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time())


@dataclass(slots=True)
class ManualClock:
    """
    Deterministic clock for tests and replays.
    Time only moves when told to.
    """
    now: int = 0

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("cannot move clock backwards")
        self.now += seconds
        return self.now
