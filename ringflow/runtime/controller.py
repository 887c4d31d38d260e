# ringflow/runtime/controller.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ringflow.core.errors import PipelineTimeoutError
from ringflow.core.event import Event
from ringflow.core.pipeline import Pipeline, PipelineFactory
from ringflow.interfaces.types import Detail, EventType
from ringflow.runtime.bus import Bus

logger = logging.getLogger(__name__)


@dataclass
class ControllerOptions:
    """
    Per-controller configuration.

    :param injections: Values injectable by name into every executor this
        controller runs. An event's detail overrides them.
    :param timeout: Seconds a pipeline may run before it is killed and
        reported as a fatal PipelineTimeoutError. None disables the watchdog.
    """

    injections: Dict[str, Any] = field(default_factory=dict)
    timeout: Optional[float] = None


class Controller:
    """
    Listens for event types on a bus and runs a pipeline of executees for each
    matching event.

    A controller catches an event synchronously during dispatch and starts its
    pipeline on the next loop turn, so every controller listening for the type
    has caught the event before any of them reports an outcome.
    """

    def __init__(self, name: str, bus: Bus, options: Optional[ControllerOptions] = None) -> None:
        self.name = name
        self.bus = bus
        self.context = bus.context
        self.options = options if options is not None else ControllerOptions()
        self.pipeline_factories: Dict[EventType, PipelineFactory] = {}
        self.destroyed = False

    @property
    def injections(self) -> Dict[str, Any]:
        return self.options.injections

    def add_listener(self, event_type: EventType, executees: Any) -> "Controller":
        """
        Run executees whenever event_type is dispatched on the bus. Registering
        the same type again replaces its executees.

        :param event_type: Event type to listen for.
        :param executees: A single executee or a sequence of them.
        :raises UnsupportedExecuteeError: If any executee shape is not supported.
        """
        factory = PipelineFactory(event_type, executees)

        if event_type not in self.pipeline_factories:
            self.bus.add_listener(event_type, self._handle_event)

        self.pipeline_factories[event_type] = factory
        logger.debug("%s listening for '%s' with %d executee(s)", self, event_type, len(factory))
        return self

    def remove_listener(self, event_type: EventType) -> None:
        if self.pipeline_factories.pop(event_type, None) is not None:
            self.bus.remove_listener(event_type, self._handle_event)

    def dispatch(self, event_type: EventType, detail: Optional[Detail] = None) -> Event:
        """Dispatch a new event on this controller's bus."""
        return Event(event_type, detail).dispatch(self.bus)

    def destroy(self) -> None:
        """Stop listening and destroy any pipelines this controller is running."""
        for event_type in list(self.pipeline_factories):
            self.remove_listener(event_type)

        for pipeline in self.context.pipelines:
            if pipeline.controller is self:
                pipeline.destroy()

        self.destroyed = True

    def _handle_event(self, event: Event) -> None:
        factory = self.pipeline_factories.get(event.type)
        if factory is None:
            return

        event.mark_caught(self)
        pipeline = factory.build(controller=self)
        asyncio.get_running_loop().call_soon(self._run_pipeline, pipeline, event)

    def _run_pipeline(self, pipeline: Pipeline, event: Event) -> None:
        if self.destroyed:
            logger.debug("%s destroyed before %s started", self, pipeline)
            return

        if self.options.timeout is not None:
            pipeline.timer = asyncio.get_running_loop().call_later(
                self.options.timeout, self._pipeline_timeout, pipeline, event
            )

        pipeline.run(event, self._pipeline_done, self._pipeline_fail)

    def _pipeline_done(self, pipeline: Pipeline) -> None:
        logger.debug("%s: %s done", self, pipeline)
        pipeline.event.report_done(self)
        self._release(pipeline.event)

    def _pipeline_fail(self, pipeline: Pipeline, error: Any, kill: bool = False) -> None:
        logger.debug("%s: %s failed with %r (kill=%s)", self, pipeline, error, kill)
        pipeline.event.report_failure(self, error, kill)
        if kill:
            self._release(pipeline.event)

    def _pipeline_timeout(self, pipeline: Pipeline, event: Event) -> None:
        pipeline.timer = None
        if not pipeline.running:
            return

        logger.warning("%s: %s timed out after %ss", self, pipeline, self.options.timeout)
        pipeline.destroy()
        event.report_failure(
            self,
            PipelineTimeoutError(f"{pipeline} timed out after {self.options.timeout}s"),
            kill=True,
        )
        self._release(event)

    def _release(self, event: Event) -> None:
        if not event.catchers:
            self.context.unregister_event(event)

    def __str__(self) -> str:
        return f"Controller[{self.name}]"

    def __repr__(self) -> str:
        return f"<Controller {self.name} types={sorted(self.pipeline_factories)}>"
