# ringflow/core/executors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from enum import Enum, auto
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, List, Optional, Sequence, Tuple

from ringflow.core.arguments import build_arguments, get_arg_names
from ringflow.core.errors import RingflowError
from ringflow.core.event import DONE, FAIL, Event, Notification
from ringflow.interfaces.types import DoneContinuation, FailContinuation

if TYPE_CHECKING:
    from ringflow.core.factory import ExecutorFactory
    from ringflow.core.pipeline import Pipeline

logger = logging.getLogger(__name__)


class ExecutorState(Enum):
    """
    Lifecycle of a single executor. DONE and FAILED are terminal.
    """

    NOT_STARTED = auto()
    RUNNING = auto()
    DONE = auto()
    FAILED = auto()


class Executor:
    """
    A runnable unit of work inside a pipeline.

    The pipeline calls ``_execute(done_handler, fail_handler)``; the executor
    does its work in execute() and finishes by calling done() or
    fail(error, kill). Continuations called after a terminal state are ignored,
    and an executor instance never runs twice.
    """

    def __init__(self, pipeline: "Pipeline", arg_names: Optional[Sequence[str]] = None) -> None:
        """
        :param pipeline: The pipeline that owns this executor.
        :param arg_names: Names injected into the executor's handler, if it has one.
        """
        self.pipeline = pipeline
        self.id = pipeline.context.next_id(type(self).__name__)
        self.arg_names: Optional[Tuple[str, ...]] = tuple(arg_names) if arg_names is not None else None
        self.state = ExecutorState.NOT_STARTED
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.error: Any = None
        self.destroyed = False
        self.children: List["Executor"] = []

        self._done_handler: Optional[DoneContinuation] = None
        self._fail_handler: Optional[FailContinuation] = None
        self._complete_on_settle = True
        self._injections: Optional[Dict[str, Any]] = None

    @property
    def controller(self) -> Any:
        return self.pipeline.controller

    @property
    def event(self) -> Optional[Event]:
        return self.pipeline.event

    @property
    def running(self) -> bool:
        return self.state is ExecutorState.RUNNING

    def _start(self, done_handler: DoneContinuation, fail_handler: FailContinuation) -> None:
        self._done_handler = done_handler
        self._fail_handler = fail_handler
        self.state = ExecutorState.RUNNING
        self.start_time = time.time()

    def _execute(self, done_handler: DoneContinuation, fail_handler: FailContinuation) -> None:
        """
        Start the executor.

        :param done_handler: Called with no arguments when the executor is done.
        :param fail_handler: Called with (error, kill) when the executor failed.
        """
        self._start(done_handler, fail_handler)
        self.execute()

    def execute(self) -> None:
        raise NotImplementedError()

    def resolve(self, names: Sequence[str]) -> List[Any]:
        """Resolve handler argument names against the pipeline's event."""
        return build_arguments(self, names, self.event)

    def done(self) -> None:
        """Mark the executor done and continue its pipeline."""
        if self.state is not ExecutorState.RUNNING:
            logger.warning("%s: done() called while %s, ignoring", self, self.state.name)
            return

        self.state = ExecutorState.DONE
        self.end_time = time.time()
        self._done_handler()

    def fail(self, error: Any = None, kill: bool = False) -> None:
        """
        Mark the executor failed.

        :param error: The failure, usually an exception.
        :param kill: True to stop the pipeline; otherwise the pipeline continues.
        """
        if self.state is not ExecutorState.RUNNING:
            logger.warning("%s: fail() called while %s, ignoring %r", self, self.state.name, error)
            return

        self.state = ExecutorState.FAILED
        self.end_time = time.time()
        self.error = error
        self._fail_handler(error, kill)

    def destroy(self) -> "Executor":
        self.destroyed = True
        for child in self.children:
            child.destroy()
        return self

    def _is_late(self) -> bool:
        """True when an asynchronous outcome arrives after it stopped mattering."""
        return self.destroyed or self.state is not ExecutorState.RUNNING or not self.pipeline.running

    def _settle(self, outcome: Any, manual: bool = False) -> None:
        """
        Finish after a handler returned. Awaitables are watched; a handler that
        asked for ``done`` finishes when it calls it.
        """
        if inspect.isawaitable(outcome):
            self._watch(outcome, complete=not manual)
        elif not manual and self.state is ExecutorState.RUNNING:
            # The handler may already have called fail() itself.
            self.done()

    def _watch(self, awaitable: Any, complete: bool = True) -> None:
        self._complete_on_settle = complete
        future = asyncio.ensure_future(awaitable)
        future.add_done_callback(self._on_settled)

    def _on_settled(self, future: "asyncio.Future[Any]") -> None:
        if future.cancelled():
            error: Optional[BaseException] = asyncio.CancelledError()
        else:
            error = future.exception()

        if self._is_late():
            logger.debug("%s: discarding outcome that settled after the executor finished", self)
            return

        if error is not None:
            self.event.last_promise_error = error
            self.fail(error)
            return

        self.event.last_promise_result = future.result()
        if self._complete_on_settle:
            self.done()

    def _run_child(self, child: "Executor", on_done: DoneContinuation, on_fail: FailContinuation) -> None:
        self.children.append(child)
        try:
            child._execute(on_done, on_fail)
        except Exception as error:
            if child.state is not ExecutorState.RUNNING:
                raise
            child.fail(error, isinstance(error, RingflowError))

    def __str__(self) -> str:
        return self.id

    def __repr__(self) -> str:
        return f"<{self.id} {self.state.name}>"


class FunctionExecutor(Executor):
    """
    Wraps a plain or coroutine function. The function's parameters are
    injected by name. A function that declares ``done`` finishes only when it
    calls it; coroutines and returned awaitables finish when they settle.
    """

    def __init__(self, pipeline: "Pipeline", fn: Callable[..., Any], arg_names: Optional[Sequence[str]] = None) -> None:
        super().__init__(pipeline, arg_names if arg_names is not None else get_arg_names(fn))
        self.fn = fn

    def execute(self) -> None:
        result = self.fn(*self.resolve(self.arg_names))
        self._settle(result, manual="done" in self.arg_names)


class PromiseExecutor(Executor):
    """
    Suspends the pipeline until an awaitable (coroutine, future, task, event)
    or a thenable settles. The result is stored as the event's
    last_promise_result, an error as last_promise_error.
    """

    def __init__(self, pipeline: "Pipeline", promise: Any) -> None:
        super().__init__(pipeline, ())
        self.promise = promise

    def execute(self) -> None:
        if inspect.isawaitable(self.promise):
            self._watch(self.promise)
        else:
            self.promise.then(self._resolve, self._reject)

    def _resolve(self, result: Any = None) -> None:
        if self._is_late():
            return
        self.event.last_promise_result = result
        self.done()

    def _reject(self, error: Any = None) -> None:
        if self._is_late():
            return
        self.event.last_promise_error = error
        self.fail(error)


class Command(Executor):
    """
    Base class for class-based commands. Subclasses implement execute() with
    the names they want injected::

        class SaveUser(Command):
            def execute(self, user, api):
                return api.save(user)

    The names may instead be declared with a ``requires`` class attribute.
    Commands follow the same completion rules as functions: return normally to
    finish, return an awaitable (or be a coroutine) to finish when it settles,
    or declare ``done`` and call it.
    """

    requires: ClassVar[Optional[Tuple[str, ...]]] = None

    def __init__(self, pipeline: "Pipeline", arg_names: Optional[Sequence[str]] = None) -> None:
        if arg_names is None:
            arg_names = self.requires if self.requires is not None else get_arg_names(self.execute)
        super().__init__(pipeline, arg_names)

    def _execute(self, done_handler: DoneContinuation, fail_handler: FailContinuation) -> None:
        self._start(done_handler, fail_handler)
        result = self.execute(*self.resolve(self.arg_names))
        self._settle(result, manual="done" in self.arg_names)

    def execute(self, *args: Any) -> Any:
        raise NotImplementedError()

    def dispatch(self, event_type: str, detail: Optional[Dict[str, Any]] = None, bus: Any = None) -> Event:
        """
        Dispatch a further event caused by this command's event. Defaults to the
        controller's bus, or wherever the current event was dispatched.
        """
        if bus is None:
            bus = self.controller.bus if self.controller is not None else self.event.target
        return Event(event_type, detail, cause=self.event).dispatch(bus)


class ConditionalExecutor(Executor):
    """
    Evaluates a predicate, then builds and runs only the matching branch,
    forwarding that branch's done/fail as its own. An omitted branch finishes
    immediately.
    """

    def __init__(
        self,
        pipeline: "Pipeline",
        predicate: Callable[..., Any],
        predicate_arg_names: Sequence[str],
        truthy: Optional["ExecutorFactory"] = None,
        falsy: Optional["ExecutorFactory"] = None,
    ) -> None:
        super().__init__(pipeline, predicate_arg_names)
        self.predicate = predicate
        self.truthy = truthy
        self.falsy = falsy
        self.outcome: Optional[bool] = None
        self.branch: Optional[Executor] = None

    def execute(self) -> None:
        outcome = self.predicate(*self.resolve(self.arg_names))

        if inspect.isawaitable(outcome):
            asyncio.ensure_future(outcome).add_done_callback(self._on_predicate)
        else:
            self._choose(outcome)

    def _on_predicate(self, future: "asyncio.Future[Any]") -> None:
        error = asyncio.CancelledError() if future.cancelled() else future.exception()
        if self._is_late():
            return
        if error is not None:
            self.fail(error)
            return
        try:
            self._choose(future.result())
        except Exception as error:
            if self.state is not ExecutorState.RUNNING:
                raise
            self.fail(error, isinstance(error, RingflowError))

    def _choose(self, outcome: Any) -> None:
        self.outcome = bool(outcome)
        factory = self.truthy if self.outcome else self.falsy

        if factory is None:
            self.done()
            return

        self.branch = factory.build(self.pipeline)
        self._run_child(self.branch, self.done, self._branch_failed)

    def _branch_failed(self, error: Any, kill: bool = False) -> None:
        self.fail(error, kill)


class ParallelExecutor(Executor):
    """
    Starts every nested executor at once. Done when all of them are done;
    once all have settled, fails with the first error if any failed (fatally
    if any failure was fatal).
    """

    def __init__(self, pipeline: "Pipeline", factories: Sequence["ExecutorFactory"]) -> None:
        super().__init__(pipeline, ())
        self.factories = list(factories)
        self._pending = 0
        self._errors: List[Any] = []
        self._kill = False

    def execute(self) -> None:
        children = [factory.build(self.pipeline) for factory in self.factories]
        self._pending = len(children)

        if not children:
            self.done()
            return

        for child in children:
            self._run_child(child, self._child_done, partial(self._child_failed, child))

    def _child_done(self) -> None:
        self._settle_child()

    def _child_failed(self, child: Executor, error: Any, kill: bool = False) -> None:
        logger.debug("%s: child %s failed with %r", self, child, error)
        self._errors.append(error)
        self._kill = self._kill or kill
        self._settle_child()

    def _settle_child(self) -> None:
        self._pending -= 1
        if self._pending > 0:
            return

        if self._errors:
            self.fail(self._errors[0], self._kill)
        else:
            self.done()


class EventExecutor(Executor):
    """
    Dispatches a named sub-event and waits for its final DONE or FAIL, that is
    until every controller that caught it has reported. The sub-event
    records the current event as its cause. A sub-event nobody catches
    finishes the executor immediately.
    """

    def __init__(
        self,
        pipeline: "Pipeline",
        event_type: str,
        detail: Optional[Dict[str, Any]] = None,
        bus: Any = None,
    ) -> None:
        super().__init__(pipeline, ())
        self.event_type = event_type
        self.detail = detail
        self.bus = bus
        self.dispatched_event: Optional[Event] = None

    def execute(self) -> None:
        bus = self.bus
        if bus is None:
            bus = self.controller.bus if self.controller is not None else self.event.target

        self.dispatched_event = Event(self.event_type, dict(self.detail or {}), cause=self.event)
        self.dispatched_event.add_listener(DONE, self._on_sub_done)
        self.dispatched_event.add_listener(FAIL, self._on_sub_fail)
        self.dispatched_event.dispatch(bus)

        if not self.dispatched_event.caught:
            self.done()

    def _on_sub_done(self, notification: Notification) -> None:
        if self._is_late():
            return
        self.done()

    def _on_sub_fail(self, notification: Notification) -> None:
        # Earlier failures arrive while the sub-event is still being handled.
        if not notification.final or self._is_late():
            return
        self.fail(notification.error)
