# ringflow/core/factory.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from ringflow.core.arguments import get_arg_names
from ringflow.core.errors import UnsupportedExecuteeError
from ringflow.core.executors import (
    ConditionalExecutor,
    EventExecutor,
    Executor,
    FunctionExecutor,
    ParallelExecutor,
    PromiseExecutor,
)
from ringflow.core.specs import (
    CommandSpec,
    ConditionalSpec,
    EventSpec,
    FunctionSpec,
    ParallelSpec,
    PromiseSpec,
    to_spec,
)

if TYPE_CHECKING:
    from ringflow.core.pipeline import Pipeline


class ExecutorFactory:
    """
    Builds executors for one executee. The executee is turned into a
    specification up front, so unsupported shapes fail when a listener is
    registered rather than when an event arrives. Argument names and nested
    factories are computed on the first build and reused afterwards.
    """

    def __init__(self, executee: Any) -> None:
        """
        :param executee: A raw executee or an explicit specification.
        :raises UnsupportedExecuteeError: If the executee shape is not supported.
        """
        self.executee = executee
        self.spec = to_spec(executee)
        self.arg_names: Optional[Tuple[str, ...]] = None
        self._nested: Optional[List[Optional[ExecutorFactory]]] = None

    def build(self, pipeline: "Pipeline") -> Executor:
        """
        Build a fresh executor owned by the given pipeline.
        """
        spec = self.spec

        if isinstance(spec, EventSpec):
            return EventExecutor(pipeline, spec.event_type, spec.detail, spec.bus)

        if isinstance(spec, PromiseSpec):
            return PromiseExecutor(pipeline, spec.promise)

        if isinstance(spec, FunctionSpec):
            if self.arg_names is None:
                self.arg_names = get_arg_names(spec.fn)
            return FunctionExecutor(pipeline, spec.fn, self.arg_names)

        if isinstance(spec, CommandSpec):
            instance = spec.command(pipeline, self.arg_names)
            if self.arg_names is None:
                self.arg_names = instance.arg_names
            return instance

        if isinstance(spec, ParallelSpec):
            if self._nested is None:
                self._nested = [ExecutorFactory(nested) for nested in spec.executees]
            return ParallelExecutor(pipeline, self._nested)

        if isinstance(spec, ConditionalSpec):
            if self._nested is None:
                self.arg_names = get_arg_names(spec.predicate)
                self._nested = [
                    ExecutorFactory(branch) if branch is not None else None for branch in (spec.truthy, spec.falsy)
                ]
            truthy, falsy = self._nested
            return ConditionalExecutor(pipeline, spec.predicate, self.arg_names, truthy, falsy)

        raise UnsupportedExecuteeError(spec)

    def __repr__(self) -> str:
        return f"ExecutorFactory({self.spec!r})"


def build_executor(executee: Any, pipeline: "Pipeline") -> Executor:
    """Build a single executor for an executee without keeping the factory."""
    return ExecutorFactory(executee).build(pipeline)
