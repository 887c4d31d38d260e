# ringflow/core/event.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
import os
import traceback
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from ringflow.core.arguments import build_arguments, get_arg_names
from ringflow.core.errors import (
    ControllerNotFoundError,
    DoubleDispatchError,
    DuplicateListenerError,
    EventFailedError,
    InvalidControllerError,
)
from ringflow.interfaces.types import Detail, NotificationHandler

if TYPE_CHECKING:
    from ringflow.core.executors import Executor
    from ringflow.core.pipeline import Pipeline
    from ringflow.interfaces.protocols import BusProtocol

logger = logging.getLogger(__name__)

DONE = "done"
FAIL = "fail"

_UNSET = object()
_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


@dataclass
class Notification:
    """An internal DONE/FAIL announcement made by an event to its listeners."""

    type: str
    detail: Any = None
    error: Any = None
    kill: bool = False
    # Set once every catching controller has reported
    final: bool = False


def _dispatch_origin() -> Optional[str]:
    """Return the innermost stack frame outside this package, for diagnostics."""
    for frame in reversed(traceback.extract_stack()):
        if not frame.filename.startswith(_PACKAGE_DIR + os.sep):
            return f"{frame.filename}:{frame.lineno} in {frame.name}"
    return None


class Event:
    """
    A named event dispatched onto a bus. Zero or more controllers catch it and
    each runs a pipeline against its ``detail`` value bag. The event aggregates
    their outcomes and announces DONE once every catching controller finished,
    or FAIL when any of them reported an error.

    An event is dispatched exactly once. It can be used like a promise through
    then()/catch(), through listeners, or simply awaited::

        event = Event("save", {"user": user}).dispatch(bus)
        await event
    """

    DONE = DONE
    FAIL = FAIL

    def __init__(
        self,
        event_type: str,
        detail: Optional[Detail] = None,
        cause: Optional["Event"] = None,
        require_catch: bool = True,
        transport_event: Any = None,
    ) -> None:
        """
        Create an event.

        :param event_type: Name controllers listen for.
        :param detail: Value bag whose keys are injected by name into executors.
        :param cause: The event whose executor triggered this one, if any.
        :param require_catch: Log a warning when nothing catches the dispatch.
        :param transport_event: The transport's own representation, if it wraps events.
        """
        if not event_type or not isinstance(event_type, str):
            raise ValueError("Event type must be a non-empty string")

        self._type = event_type
        self.detail: Detail = detail if detail is not None else {}
        self.cause = cause
        self.require_catch = require_catch
        self.transport_event = transport_event

        self.id: Optional[str] = None
        self.dispatched = False
        self.dispatch_origin: Optional[str] = None
        self._target: Any = None

        # Controllers currently handling the event, and those done with it
        self.catchers: List[Any] = []
        self.completed: List[Any] = []
        self._caught = False

        self.errors: List[Any] = []
        self._last_promise_result: Any = _UNSET
        self._last_promise_error: Any = _UNSET

        self.notifications: List[Notification] = []
        self._listeners: Dict[str, List[Tuple[Callable[..., Any], NotificationHandler]]] = {}
        self._pipelines: List["Pipeline"] = []

    @property
    def type(self) -> str:
        """The event type."""
        return self._type

    @property
    def caught(self) -> bool:
        """True once any controller caught this event. Never reverts."""
        return self._caught

    @property
    def target(self) -> Any:
        return self._target

    @target.setter
    def target(self, value: Any) -> None:
        self._target = value

    @property
    def controllers(self) -> List[Any]:
        """Every controller that ran, or is running, as a result of this event."""
        return self.completed + self.catchers

    @property
    def pipelines(self) -> List["Pipeline"]:
        return list(self._pipelines)

    @property
    def executors(self) -> List["Executor"]:
        """Every executor that ran, or will run, for this dispatch, in order."""
        return [executor for pipeline in self._pipelines for executor in pipeline.executors]

    @property
    def settled(self) -> bool:
        """True once the final DONE or FAIL was announced."""
        return any(notification.final for notification in self.notifications)

    @property
    def last_promise_result(self) -> Any:
        """
        The last awaited result of this event. When unset, the result of the
        event that caused this one is returned, recursively.
        """
        if self._last_promise_result is not _UNSET:
            return self._last_promise_result
        if self.cause is not None:
            return self.cause.last_promise_result
        return None

    @last_promise_result.setter
    def last_promise_result(self, value: Any) -> None:
        self._last_promise_result = value

    @property
    def last_promise_error(self) -> Any:
        """Like last_promise_result, for the last awaited error."""
        if self._last_promise_error is not _UNSET:
            return self._last_promise_error
        if self.cause is not None:
            return self.cause.last_promise_error
        return None

    @last_promise_error.setter
    def last_promise_error(self, value: Any) -> None:
        self._last_promise_error = value

    def dispatch(self, bus: "BusProtocol") -> "Event":
        """
        Dispatch the event on the provided bus.

        :param bus: Any object implementing dispatch_event(event).
        :raises DoubleDispatchError: If the event was already dispatched.
        """
        if self.dispatched:
            raise DoubleDispatchError(f"{self}: events should only be dispatched once")

        self.dispatch_origin = _dispatch_origin()
        if self._target is None:
            self._target = bus

        self.dispatched = True
        logger.debug("Dispatching %s on %r", self, bus)

        bus.dispatch_event(self)

        if self.require_catch and not self.caught:
            logger.warning(
                "The event '%s' was never caught! Was it dispatched on the proper bus? Dispatched on %r from %s",
                self.type,
                bus,
                self.dispatch_origin,
            )

        return self

    def mark_caught(self, controller: Any) -> None:
        """
        Called by each controller when it catches the event.

        :raises InvalidControllerError: If no controller is given.
        """
        if controller is None:
            raise InvalidControllerError(f"{self}: cannot be caught without a controller")

        self._caught = True
        self.catchers.append(controller)
        logger.debug("%s caught by %s", self, controller)

    def mark_uncaught(self, controller: Any) -> None:
        """
        Called when a controller finished handling the event.

        :raises ControllerNotFoundError: If the controller is not currently
            handling the event. Was done reported twice?
        """
        if controller not in self.catchers:
            raise ControllerNotFoundError(
                f"{self}: controller {controller} that is uncatching could not be found. Was done called twice?"
            )

        self.catchers.remove(controller)
        self.completed.append(controller)
        logger.debug("%s uncaught by %s", self, controller)

    def report_failure(self, controller: Any, error: Any, kill: bool = False) -> None:
        """
        Called by a catching controller when one of its executors failed.

        :param controller: The controller whose pipeline failed.
        :param error: Usually an exception, but anything a user passed to fail().
        :param kill: True if the failure stopped the controller's pipeline.
        """
        self.push_error(error)

        if kill:
            self.mark_uncaught(controller)

        self._emit(FAIL, error=error, kill=kill, final=kill and not self.catchers)

    def report_done(self, controller: Any) -> None:
        """
        Called by a catching controller when its pipeline completed. Once every
        catching controller reported, DONE is announced, or FAIL when any
        errors were recorded along the way.
        """
        if controller is None:
            raise InvalidControllerError(f"{self}: done reported without a controller")

        self.mark_uncaught(controller)

        if self.catchers:
            return

        if self.errors:
            self._emit(FAIL, error=self.errors[0], final=True)
        else:
            self._emit(DONE, final=True)

    def fail(self, error: Any) -> None:
        """Record an error from user code; the final announcement becomes FAIL."""
        self.push_error(error)

    def push_error(self, error: Any) -> None:
        self.errors.append(error)

    def add_listener(self, notification_type: str, handler: NotificationHandler) -> "Event":
        """
        Listen for DONE or FAIL. Notifications that already happened are
        replayed to the new handler immediately.

        :raises DuplicateListenerError: If handler is already registered for the type.
        """
        return self._add_listener(notification_type, handler, handler)

    def add_done_listener(self, handler: Callable[..., Any]) -> "Event":
        """
        Listen for the moment every pipeline triggered by this event is done.
        The handler's parameters are injected by name, like an executor's.
        """
        arg_names = get_arg_names(handler)

        def on_done(notification: Notification) -> Any:
            return handler(*build_arguments(None, arg_names, self))

        return self._add_listener(DONE, handler, on_done)

    def add_fail_listener(self, handler: NotificationHandler) -> "Event":
        """Listen for failures of any pipeline triggered by this event."""
        return self._add_listener(FAIL, handler, handler)

    def then(
        self,
        on_done: Optional[Callable[..., Any]] = None,
        on_fail: Optional[NotificationHandler] = None,
    ) -> "Event":
        """Treat the event like a promise: on_done on DONE, on_fail on FAIL."""
        if on_done is not None:
            self.add_done_listener(on_done)
        if on_fail is not None:
            self.add_fail_listener(on_fail)
        return self

    def catch(self, on_fail: NotificationHandler) -> "Event":
        return self.add_fail_listener(on_fail)

    def __await__(self):
        """
        Resolve to the event once every catching controller reported, or raise
        the first recorded error. Intermediate failures do not settle it.
        """
        future = asyncio.get_running_loop().create_future()

        def on_done(notification: Notification) -> None:
            if not future.done():
                future.set_result(self)

        def on_fail(notification: Notification) -> None:
            if notification.final and not future.done():
                error = notification.error
                if not isinstance(error, BaseException):
                    error = EventFailedError(self, error)
                future.set_exception(error)

        self.add_listener(DONE, on_done)
        self.add_listener(FAIL, on_fail)
        return future.__await__()

    def _add_listener(
        self, notification_type: str, key: Callable[..., Any], callback: NotificationHandler
    ) -> "Event":
        if not isinstance(notification_type, str):
            raise ValueError(f"Invalid notification type provided: {notification_type!r}")

        listeners = self._listeners.setdefault(notification_type, [])
        if any(existing is key for existing, _ in listeners):
            raise DuplicateListenerError(f"{self}: the same function was added as a {notification_type} listener twice")

        listeners.append((key, callback))

        for notification in list(self.notifications):
            if notification.type == notification_type:
                self._notify(callback, notification)

        return self

    def _emit(
        self,
        notification_type: str,
        detail: Any = None,
        error: Any = None,
        kill: bool = False,
        final: bool = False,
    ) -> None:
        notification = Notification(type=notification_type, detail=detail, error=error, kill=kill, final=final)
        self.notifications.append(notification)
        logger.debug("%s announcing %s (final=%s)", self, notification_type, final)

        for _, callback in list(self._listeners.get(notification_type, [])):
            self._notify(callback, notification)

    def _notify(self, callback: NotificationHandler, notification: Notification) -> None:
        # Listener errors are logged; the remaining listeners still run.
        try:
            callback(notification)
        except Exception:
            logger.exception("%s: %s listener %r failed", self, notification.type, callback)

    def _add_pipeline(self, pipeline: "Pipeline") -> None:
        self._pipelines.append(pipeline)

    def __str__(self) -> str:
        return f"Event[{self.type}, {self.id}]"

    def __repr__(self) -> str:
        caught_by = ", ".join(str(c) for c in self.controllers) or "nothing yet"
        return f"<Event {self.id} '{self.type}' caught by {caught_by}>"


def dispatch(event_type: str, detail: Optional[Detail] = None, *, bus: "BusProtocol", **kwargs: Any) -> Event:
    """
    Build an event and dispatch it on a bus.

    :param event_type: Name controllers listen for.
    :param detail: Value bag injected by name into executors.
    :param bus: Bus to dispatch on.
    :param kwargs: Further Event constructor arguments (cause, require_catch, ...).
    """
    return Event(event_type, detail, **kwargs).dispatch(bus)
