# ringflow/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, Optional, Sequence


class RingflowError(Exception):
    """
    Base exception class for errors within the ringflow library. Subclasses
    raised by the library itself signal a caller defect (a broken contract).
    """


class DoubleDispatchError(RingflowError):
    """
    Raised when an event that was already dispatched is dispatched again.
    """


class InvalidControllerError(RingflowError):
    """
    Raised when an event is caught without a controller reference.
    """


class ControllerNotFoundError(RingflowError):
    """
    Raised when a controller reports completion for an event it never caught,
    usually because done was reported twice.
    """


class DuplicateListenerError(RingflowError):
    """
    Raised when the same handler is registered twice for one notification type.
    """


class PipelineRunningError(RingflowError):
    """
    Raised when run() is called on a pipeline that is already running.
    """


class EmptyPipelineError(RingflowError):
    """
    Raised when a pipeline with no executors is run.
    """


class MissingEventError(RingflowError):
    """
    Raised when a pipeline is run without an event to run against.
    """


class UnsupportedExecuteeError(RingflowError):
    """
    Raised when an executee has a shape the executor factory does not know.
    """

    def __init__(self, executee: Any) -> None:
        self.executee = executee
        super().__init__(
            f"The type of executee provided is not supported: {type(executee).__name__}: {executee!r}"
        )


class UnresolvedArgumentError(RingflowError):
    """
    Raised when a declared parameter name cannot be found in the event detail,
    the well-known injections or the controller injections.
    """

    def __init__(self, name: str, expected: Sequence[str], origin: Optional[str] = None, owner: Any = None) -> None:
        self.name = name
        self.expected = list(expected)
        self.origin = origin
        self.owner = owner
        super().__init__(
            f"{owner if owner is not None else 'handler'}: the property '{name}' was not provided on the "
            f"dispatched event. Expected arguments were: {self.expected}. "
            f"Dispatched from: {origin or 'unknown origin'}"
        )


class PipelineTimeoutError(RingflowError):
    """
    Raised (as a fatal failure) when a controller's pipeline exceeds its timeout.
    """


class EventFailedError(RingflowError):
    """
    Raised when awaiting an event that failed with an error that is not itself
    an exception.
    """

    def __init__(self, event: Any, error: Any) -> None:
        self.event = event
        self.error = error
        super().__init__(f"{event} failed: {error!r}")
