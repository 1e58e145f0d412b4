from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, Sequence, TypeAlias

import structlog

from copytrade.core.events.base import Event

log = structlog.get_logger()

EventHandler: TypeAlias = Callable[[Event], None]

# Subscribing to this key receives every published event
ALL_EVENTS = "*"


@dataclass(frozen=True)
class Subscription:
    """
    Represents a subscription of a handler to a specific event_type.
    """

    event_type: str
    handler: EventHandler


class EventBus:
    """
    Synchronous in-process event bus.

    - publish(event) dispatches to handlers of event.event_type, then to ALL_EVENTS handlers
    - dispatch order is subscription order
    - handler failures propagate to the publisher (which decides whether to isolate them)
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, *, event_type: str, handler: EventHandler) -> Subscription:
        if not event_type:
            raise ValueError("event_type must be non-empty")
        self._handlers[event_type].append(handler)
        log.debug("bus.subscribed", event_type=event_type, handler=getattr(handler, "__name__", "handler"))
        return Subscription(event_type=event_type, handler=handler)

    def register(self, component: "EventComponent") -> tuple[Subscription, ...]:
        """
        Wire every (event_type, handler) pair a component declares, in declared order.
        """
        subs = component.subscriptions()
        if not isinstance(subs, Sequence):
            raise TypeError(f"{type(component).__name__}.subscriptions() must return a Sequence")
        return tuple(self.subscribe(event_type=et, handler=h) for et, h in subs)

    def publish(self, event: Event) -> None:
        handlers = [*self._handlers.get(event.event_type, ()), *self._handlers.get(ALL_EVENTS, ())]
        log.debug(
            "bus.publish",
            event_type=event.event_type,
            sequence=event.sequence,
            handlers=len(handlers),
        )
        for handler in handlers:
            handler(event)


class EventComponent:
    """
    Structural interface: anything exposing subscriptions() can be registered.
    """

    def subscriptions(self) -> Sequence[tuple[str, EventHandler]]:  # pragma: no cover - interface
        raise NotImplementedError
