from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, TypeVar

E = TypeVar("E", bound="Event")


@dataclass(frozen=True, slots=True, kw_only=True)
class Event:
    """
    Base for all events published on the EventBus.

    - event_type: stable routing key (ClassVar on each subclass)
    - sequence: engine-assigned monotonic ordering
    """

    event_type: ClassVar[str] = "event"

    sequence: int
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)
    timestamp_utc: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(cls: type[E], *, sequence: int, **fields: Any) -> E:
        if sequence <= 0:
            raise ValueError("sequence must be > 0")
        return cls(sequence=sequence, **fields)
