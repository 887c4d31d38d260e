# ringflow/interfaces/protocols.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class BusProtocol(Protocol):
    """
    Transport protocol for delivering dispatched events.

    Methods:
        dispatch_event(event): Deliver the event to every handler listening for
            its type.

    Runtime Invariants:
    - Handlers are called synchronously, inside dispatch_event.
    - Each controller a bus routes to calls mark_caught on the event and later
      report_done or report_failure.
    """

    def dispatch_event(self, event: Any) -> None:
        """Deliver a dispatched event to its listeners."""
        ...


@runtime_checkable
class Thenable(Protocol):
    """
    Promise-like protocol: anything exposing then(on_resolve, on_reject).

    Either callback may be called at most once; callbacks receive the result or
    the error respectively.
    """

    def then(self, on_resolve: Callable[..., Any], on_reject: Callable[..., Any]) -> Any:
        ...


@runtime_checkable
class InspectorHook(Protocol):
    """
    Inspector/telemetry protocol. Every method is informational only and may be
    omitted by a hook implementation; HookManager checks for each one.
    """

    def on_dispatch(self, event: Any) -> None:
        ...

    def on_executor_end(self, executor: Any) -> None:
        ...

    def on_error(self, error: Exception) -> None:
        ...
