# ringflow/core/specs.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Tagged executee specifications.

Controllers are usually given raw executees (functions, Command subclasses,
event names, lists, awaitables); to_spec() infers which specification each one
is. The same specifications can be built explicitly to skip inference.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Type, Union

from ringflow.core.errors import UnsupportedExecuteeError
from ringflow.core.executors import Command
from ringflow.interfaces.protocols import Thenable


@dataclass(frozen=True)
class FunctionSpec:
    fn: Callable[..., Any]


@dataclass(frozen=True)
class PromiseSpec:
    promise: Any


@dataclass(frozen=True)
class CommandSpec:
    command: Type[Command]


@dataclass(frozen=True)
class ParallelSpec:
    executees: Tuple["Spec", ...]


@dataclass(frozen=True)
class ConditionalSpec:
    predicate: Callable[..., Any]
    truthy: Optional["Spec"] = None
    falsy: Optional["Spec"] = None


@dataclass(frozen=True)
class EventSpec:
    event_type: str
    detail: Optional[Dict[str, Any]] = None
    bus: Any = None


Spec = Union[FunctionSpec, PromiseSpec, CommandSpec, ParallelSpec, ConditionalSpec, EventSpec]
SPEC_TYPES = (FunctionSpec, PromiseSpec, CommandSpec, ParallelSpec, ConditionalSpec, EventSpec)


def _is_thenable(value: Any) -> bool:
    return not inspect.isclass(value) and isinstance(value, Thenable) and callable(value.then)


def to_spec(executee: Any) -> Spec:
    """
    Infer the specification for a raw executee from its run-time shape.

    :raises UnsupportedExecuteeError: If the shape is not recognized.
    """
    if isinstance(executee, SPEC_TYPES):
        return executee

    if isinstance(executee, str):
        return EventSpec(executee)

    if inspect.isclass(executee) and issubclass(executee, Command):
        return CommandSpec(executee)

    if isinstance(executee, (list, tuple)):
        return ParallelSpec(tuple(to_spec(nested) for nested in executee))

    if inspect.isawaitable(executee) or _is_thenable(executee):
        return PromiseSpec(executee)

    if callable(executee) and not inspect.isclass(executee):
        return FunctionSpec(executee)

    raise UnsupportedExecuteeError(executee)


def iif(predicate: Callable[..., Any], truthy: Any = None, falsy: Any = None) -> ConditionalSpec:
    """
    Branch on a predicate. The predicate's parameters are injected by name;
    truthy and falsy may be any executee, including another iif().
    """
    if not callable(predicate):
        raise TypeError(f"iif() predicate must be callable, got {type(predicate).__name__}")

    return ConditionalSpec(
        predicate,
        to_spec(truthy) if truthy is not None else None,
        to_spec(falsy) if falsy is not None else None,
    )


def trigger(event_type: str, detail: Optional[Dict[str, Any]] = None, bus: Any = None) -> EventSpec:
    """Dispatch a sub-event, optionally with its own detail and bus, and wait for it."""
    return EventSpec(event_type, detail, bus)
