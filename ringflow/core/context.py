# ringflow/core/context.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from ringflow.core.hooks import HookManager

if TYPE_CHECKING:
    from ringflow.core.event import Event
    from ringflow.core.pipeline import Pipeline

logger = logging.getLogger(__name__)


class Context:
    """
    Owns everything that would otherwise be process-wide: the identity
    sequence for events, pipelines and executors, the inspector hooks, and the
    registry of live pipelines and in-flight events. teardown() releases all of
    it, which gives tests a deterministic reset point.
    """

    def __init__(self, hooks: Optional[Union[HookManager, List[Any]]] = None) -> None:
        """
        :param hooks: A HookManager, or a list of hook objects to wrap in one.
        """
        self._ids = itertools.count()
        self.hooks = hooks if isinstance(hooks, HookManager) else HookManager(hooks)
        self._pipelines: Dict[str, "Pipeline"] = {}
        self._events: Dict[str, "Event"] = {}

    def next_id(self, prefix: str) -> str:
        """Return a new identifier, unique within this context."""
        return f"{prefix}#{next(self._ids)}"

    @property
    def pipelines(self) -> List["Pipeline"]:
        return list(self._pipelines.values())

    @property
    def events(self) -> List["Event"]:
        return list(self._events.values())

    def register_pipeline(self, pipeline: "Pipeline") -> None:
        self._pipelines[pipeline.id] = pipeline

    def unregister_pipeline(self, pipeline: "Pipeline") -> None:
        self._pipelines.pop(pipeline.id, None)

    def register_event(self, event: "Event") -> None:
        if event.id is None:
            event.id = self.next_id("Event")
        self._events[event.id] = event

    def unregister_event(self, event: "Event") -> None:
        if event.id is not None:
            self._events.pop(event.id, None)

    def teardown(self) -> None:
        """
        Destroy every live pipeline and forget every in-flight event. Outcomes
        that arrive afterwards are discarded by the destroyed pipelines.
        """
        pipelines = list(self._pipelines.values())
        logger.debug("Tearing down context with %d live pipelines", len(pipelines))

        for pipeline in pipelines:
            pipeline.destroy()

        self._pipelines.clear()
        self._events.clear()
