from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from lprewards.core.events.base import Event


@dataclass(frozen=True, slots=True)
class EngineError(Event):
    """
    Emitted when an engine operation fails and its state changes were rolled back.
    """

    event_type: ClassVar[str] = "system.engine_error"

    operation: str

    error_type: str
    error_message: str
