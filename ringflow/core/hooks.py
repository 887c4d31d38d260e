# ringflow/core/hooks.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import logging
from typing import TYPE_CHECKING, Any, List, Optional

if TYPE_CHECKING:
    from ringflow.interfaces.protocols import InspectorHook

logger = logging.getLogger(__name__)


class HookManager:
    """
    Manages the registration and execution of inspector hooks that listen to
    engine lifecycle events (on_dispatch, on_executor_end, on_error). Users can
    attach logging, monitoring, or tooling without altering core logic.
    """

    def __init__(self, hooks: Optional[List["InspectorHook"]] = None) -> None:
        """
        Initialize with an optional list of hook objects.
        """
        self._hooks: List[Any] = list(hooks or [])
        self._invoker = _HookInvoker(self._hooks)

    @property
    def hooks(self) -> List[Any]:
        return list(self._hooks)

    def register_hook(self, hook: "InspectorHook") -> None:
        """
        Add a new hook to the manager's list of hooks.

        :param hook: An object implementing any subset of the InspectorHook methods.
        """
        self._hooks.append(hook)

    def unregister_hook(self, hook: "InspectorHook") -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    def execute_on_dispatch(self, event: Any) -> None:
        """
        Run all hooks' on_dispatch logic when an event is delivered to a bus.
        """
        self._invoker.invoke("on_dispatch", event)

    def execute_on_executor_end(self, executor: Any) -> None:
        """
        Run all hooks' on_executor_end logic when an executor is evicted from
        its pipeline.
        """
        self._invoker.invoke("on_executor_end", executor)

    def execute_on_error(self, error: Exception) -> None:
        """
        Run all hooks' on_error logic when an executor fails.
        """
        self._invoker.invoke("on_error", error)


class _HookInvoker:
    """
    Internal helper that iterates through a list of hooks and invokes their
    lifecycle methods. A failing hook is logged and skipped; inspection never
    changes the outcome of a pipeline.
    """

    def __init__(self, hooks: List[Any]) -> None:
        self._hooks = hooks

    def invoke(self, method_name: str, subject: Any) -> None:
        for hook in list(self._hooks):
            method = getattr(hook, method_name, None)
            if method is None:
                continue
            try:
                method(subject)
            except Exception:
                logger.exception("Inspector hook %r failed in %s", hook, method_name)
