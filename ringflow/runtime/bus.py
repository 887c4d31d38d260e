# ringflow/runtime/bus.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from ringflow.core.context import Context
from ringflow.interfaces.types import EventType

if TYPE_CHECKING:
    from ringflow.core.event import Event

logger = logging.getLogger(__name__)

EventHandler = Callable[["Event"], None]


class Bus:
    """
    In-process event bus. Handlers are registered per event type and called
    synchronously, in registration order, with the dispatched Event.

    Events dispatched here are registered in the bus's Context for the time
    they are in flight.
    """

    def __init__(self, context: Optional[Context] = None) -> None:
        """
        :param context: Shared identity and hook context; a fresh one by default.
        """
        self.context = context if context is not None else Context()
        self._listeners: Dict[EventType, List[EventHandler]] = defaultdict(list)

    def add_listener(self, event_type: EventType, handler: EventHandler) -> None:
        self._listeners[event_type].append(handler)
        logger.debug("Bus listener added for '%s'", event_type)

    def remove_listener(self, event_type: EventType, handler: EventHandler) -> None:
        handlers = self._listeners.get(event_type)
        if not handlers or handler not in handlers:
            return

        handlers.remove(handler)
        if not handlers:
            del self._listeners[event_type]

    def has_listeners(self, event_type: EventType) -> bool:
        return bool(self._listeners.get(event_type))

    def dispatch_event(self, event: "Event") -> None:
        """
        Deliver an event to every handler registered for its type.
        """
        self.context.register_event(event)
        self.context.hooks.execute_on_dispatch(event)

        handlers = list(self._listeners.get(event.type, ()))
        logger.debug("Bus delivering %s to %d handler(s)", event, len(handlers))

        for handler in handlers:
            handler(event)

        if not event.caught:
            self.context.unregister_event(event)

    def __repr__(self) -> str:
        return f"<Bus types={sorted(self._listeners)}>"
