# ringflow/core/arguments.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Name-based argument injection.

A handler such as::

    def execute(user, filter): ...

declares the names ``('user', 'filter')``. Each name is looked up in the
dispatched event's ``detail`` first, then in the well-known injectables and the
controller's configured injections:

- controller: the Controller handling the pipeline
- pipeline: the Pipeline that built the executor
- event: the dispatched Event itself
- transport_event: the transport's own representation of the event, if any
- target: the bus (or object) the event was dispatched on
- detail: the event's value bag
- done / fail: the owning executor's continuations
- last_promise_result / last_promise_error: the latest awaited outcome
"""

import inspect
from collections import ChainMap
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Tuple

from ringflow.core.errors import UnresolvedArgumentError

if TYPE_CHECKING:
    from ringflow.core.event import Event
    from ringflow.core.executors import Executor

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def requires(*names: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Declare the ordered argument names of a handler explicitly instead of
    relying on signature introspection.

    :param names: Names to resolve, in the order the handler receives them.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        fn.requires = tuple(names)
        return fn

    return decorator


def get_arg_names(fn: Callable[..., Any]) -> Tuple[str, ...]:
    """
    Return the names a callable expects to have injected.

    :param fn: Function, bound method or other callable.
    """
    declared = getattr(fn, "requires", None)
    if isinstance(declared, (list, tuple)):
        return tuple(declared)

    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures take no injections.
        return ()

    return tuple(name for name, param in signature.parameters.items() if param.kind in _POSITIONAL)


def build_injections(executor: Optional["Executor"], event: "Event") -> Dict[str, Any]:
    """
    Build the table of well-known injectable values for an executor. Controller
    injections are layered on top of the well-known names.

    The table is cached on the executor, so it is computed once per executor.
    """
    if executor is not None and executor._injections is not None:
        return executor._injections

    well_known = {
        "event": event,
        "transport_event": event.transport_event,
        "target": event.target,
        "detail": event.detail,
        "last_promise_result": event.last_promise_result,
        "last_promise_error": event.last_promise_error,
    }

    if executor is not None:
        controllers = [executor.controller] if executor.controller is not None else []
        well_known.update(
            {
                "controller": executor.controller,
                "pipeline": executor.pipeline,
                "done": executor.done,
                "fail": executor.fail,
            }
        )
    else:
        controllers = event.controllers
        well_known["controller"] = controllers[-1] if controllers else None

    controller_injections = {}
    for controller in controllers:
        controller_injections.update(controller.injections)

    injections = dict(ChainMap(controller_injections, well_known))

    if executor is not None:
        executor._injections = injections

    return injections


def build_arguments(executor: Optional["Executor"], expected: Sequence[str], event: "Event") -> List[Any]:
    """
    Produce the positional argument list for a handler from the event's value bag.

    :param executor: The executor that owns the handler, or None for listeners
        attached directly to the event.
    :param expected: Ordered parameter names, see get_arg_names().
    :param event: The dispatched event carrying the value bag.
    :raises UnresolvedArgumentError: If a name cannot be resolved.
    """
    if not isinstance(expected, (list, tuple)):
        raise TypeError(f"expected argument names must be a list or tuple, got {type(expected).__name__}")

    scope = ChainMap(event.detail, build_injections(executor, event))

    args = []
    for name in expected:
        if name not in scope:
            raise UnresolvedArgumentError(name, expected, origin=event.dispatch_origin, owner=executor)
        args.append(scope[name])

    return args
