from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Protocol, Sequence

from lprewards.core.events.base import Event
from lprewards.core.events.bus import EventBus

EventHandler = Callable[[Event], None]


class EventComponent(Protocol):
    """
    Anything that listens to engine events (event log, collectors, notifiers).
    """

    def subscriptions(self) -> Sequence[tuple[str, EventHandler]]:
        ...


@dataclass(frozen=True, slots=True)
class WiredSubscription:
    component: str
    event_type: str
    handler: str


@dataclass(frozen=True, slots=True)
class RouterWiring:
    """
    What got wired, in wiring order. Written into the pool snapshot for audit.
    """

    subscriptions: tuple[WiredSubscription, ...]

    def to_dict(self) -> list[dict[str, str]]:
        return [
            {"component": w.component, "event_type": w.event_type, "handler": w.handler}
            for w in self.subscriptions
        ]


class EngineRouter:
    """
    Registers listener components onto an EventBus deterministically.

    - components are wired in the order provided
    - each component's subscriptions() order is preserved
    - the same handler wired twice for one event_type is an error
    """

    def __init__(self, *, bus: EventBus) -> None:
        self._bus = bus

    def register(self, components: Iterable[EventComponent]) -> RouterWiring:
        wired: list[WiredSubscription] = []
        seen: set[tuple[str, int]] = set()

        for component in components:
            cname = type(component).__name__

            subs = component.subscriptions()
            if not isinstance(subs, Sequence):
                raise TypeError(f"{cname}.subscriptions() must return a Sequence")

            for event_type, handler in subs:
                if not event_type:
                    raise ValueError(f"{cname} produced empty event_type")

                key = (event_type, id(handler))
                if key in seen:
                    raise RuntimeError(f"duplicate subscription detected: component={cname} event_type={event_type}")
                seen.add(key)

                self._bus.subscribe(event_type=event_type, handler=handler)
                wired.append(
                    WiredSubscription(
                        component=cname,
                        event_type=event_type,
                        handler=getattr(handler, "__name__", "handler"),
                    )
                )

        return RouterWiring(subscriptions=tuple(wired))
