from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, TypeAlias

import structlog

from lprewards.core.events.base import Event

log = structlog.get_logger()

EventHandler: TypeAlias = Callable[[Event], None]

# Subscribing to this event_type receives every published event.
ANY_EVENT = "*"


@dataclass(frozen=True)
class Subscription:
    event_type: str
    handler: EventHandler


class EventBus:
    """
    In-process fan-out of committed engine events.

    Exact-type handlers see an event before ANY_EVENT handlers (the event log),
    each group in subscription order. A handler that raises stops the fan-out
    and the error reaches whoever published.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, *, event_type: str, handler: EventHandler) -> Subscription:
        if not event_type:
            raise ValueError("event_type must be non-empty")
        self._handlers[event_type].append(handler)
        log.debug("bus.subscribed", event_type=event_type, handler=getattr(handler, "__name__", "handler"))
        return Subscription(event_type=event_type, handler=handler)

    def publish(self, event: Event) -> None:
        handlers = [*self._handlers.get(event.event_type, []), *self._handlers.get(ANY_EVENT, [])]
        log.debug(
            "bus.publish",
            event_type=event.event_type,
            sequence=event.sequence,
            handlers=len(handlers),
        )
        for handler in handlers:
            handler(event)
