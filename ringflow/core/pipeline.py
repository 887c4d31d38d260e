# ringflow/core/pipeline.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from ringflow.core.context import Context
from ringflow.core.errors import EmptyPipelineError, MissingEventError, PipelineRunningError, RingflowError
from ringflow.core.executors import Executor, ExecutorState
from ringflow.core.factory import ExecutorFactory

if TYPE_CHECKING:
    from ringflow.core.event import Event
    from ringflow.interfaces.types import PipelineDoneHandler, PipelineFailHandler

logger = logging.getLogger(__name__)


class PipelineFactory:
    """
    The ordered executee list a controller registered for one event type.
    Each dispatch builds a fresh Pipeline from it.
    """

    def __init__(self, name: str, executees: Any) -> None:
        """
        :param name: Usually the event type the list responds to.
        :param executees: A single executee or a sequence of them. Nested
            sequences inside it run in parallel.
        """
        if not isinstance(executees, (list, tuple)):
            executees = [executees]

        self.name = name
        self.all: List[ExecutorFactory] = [ExecutorFactory(executee) for executee in executees]

    def build(self, controller: Any = None, context: Optional[Context] = None) -> "Pipeline":
        return Pipeline(self.name, self, controller=controller, context=context)

    def __len__(self) -> int:
        return len(self.all)


class Pipeline:
    """
    Runs the executors built from a PipelineFactory strictly one at a time.

    Each step starts the current executor with internal done/fail
    continuations. Advancing to the next executor is deferred to the next
    event loop turn, so long pipelines never grow the call stack. A non-fatal
    failure is reported and the pipeline continues; a fatal one stops it.
    """

    def __init__(
        self,
        name: str,
        factory: PipelineFactory,
        controller: Any = None,
        context: Optional[Context] = None,
    ) -> None:
        if context is None:
            context = controller.context if controller is not None else Context()

        self.name = name
        self.factory = factory
        self.controller = controller
        self.context = context
        self.id = context.next_id("Pipeline")

        self.running = False
        self.destroyed = False
        self.index = 0
        self.event: Optional["Event"] = None
        self.error: Any = None
        self.done_handler: Optional["PipelineDoneHandler"] = None
        self.fail_handler: Optional["PipelineFailHandler"] = None
        # Watchdog handle set by a controller with a timeout
        self.timer: Optional[asyncio.TimerHandle] = None

        self._executors: List[Executor] = []
        self._live: Dict[str, Executor] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def executors(self) -> List[Executor]:
        """Every executor built for the current run, in order."""
        return list(self._executors)

    def build_executors(self) -> None:
        self._executors = [factory.build(self) for factory in self.factory.all]
        self._live = {executor.id: executor for executor in self._executors}

    def run(self, event: "Event", done_handler: "PipelineDoneHandler", fail_handler: "PipelineFailHandler") -> None:
        """
        Run every executor against an event.

        :param event: The dispatched event whose detail is injected.
        :param done_handler: Called with the pipeline once every executor finished.
        :param fail_handler: Called with (pipeline, error, kill) on every failure.
        :raises PipelineRunningError: If the pipeline is already running.
        :raises EmptyPipelineError: If there are no executors to run.
        :raises MissingEventError: If event is None.
        """
        if self.running:
            raise PipelineRunningError(f"{self}: you cannot start a pipeline while it is already running")

        if not self.factory.all:
            raise EmptyPipelineError(f"{self}: attempting to run a pipeline with no executors")

        if event is None:
            raise MissingEventError(f"{self}: cannot run a pipeline without an event")

        self._loop = asyncio.get_running_loop()
        self.event = event
        self.done_handler = done_handler
        self.fail_handler = fail_handler
        self.error = None

        event._add_pipeline(self)
        self.context.register_pipeline(self)
        self.build_executors()

        self.index = 0
        self.running = True
        self._execute_next()

    def _execute_next(self) -> None:
        if not self.running:
            return

        executor = self._executors[self.index]

        if self.index > 0:
            self.remove_executor(self._executors[self.index - 1])

        logger.debug("%s executing %s", self, executor)

        try:
            executor._execute(self._executor_done_handler, self._executor_fail_handler)
        except RingflowError as error:
            if executor.state is not ExecutorState.RUNNING:
                raise
            logger.error("%s: %s broke a contract and is failed fatally: %s", self, executor, error)
            executor.fail(error, True)
        except Exception as error:
            if executor.state is not ExecutorState.RUNNING:
                raise
            executor.fail(error)

    def kill(self) -> None:
        """Stop running further executors. Executors already finished stay finished."""
        if self.running:
            logger.debug("%s killed at index %d", self, self.index)
        self.running = False

    def destroy(self) -> None:
        """
        Kill the pipeline and release its executors. Continuations arriving
        afterwards are discarded.
        """
        self.kill()
        self.destroyed = True

        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

        for executor in self._live.values():
            executor.destroy()
        self._live.clear()
        self.context.unregister_pipeline(self)

    def remove_executor(self, executor: Executor) -> None:
        if executor.id not in self._live:
            return

        del self._live[executor.id]
        self.context.hooks.execute_on_executor_end(executor)

    def _current(self) -> Optional[Executor]:
        if self.index >= len(self._executors):
            return None

        executor = self._executors[self.index]
        return executor if executor.id in self._live else None

    def _finish(self) -> None:
        self.running = False
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        self.context.unregister_pipeline(self)

    def _executor_done_handler(self) -> None:
        if not self.running:
            logger.debug("%s: discarding done after the pipeline stopped", self)
            return

        executor = self._current()
        if executor is None:
            self._could_not_find_error()
            return

        executor.destroy()
        logger.debug("%s done: %s", self, executor)

        self.index += 1

        if self.index < len(self._executors):
            self._loop.call_soon(self._execute_next)
        else:
            self._finish()
            self.done_handler(self)
            self.remove_executor(executor)

    def _executor_fail_handler(self, error: Any, kill: bool = False) -> None:
        if not self.running:
            logger.debug("%s: discarding failure %r after the pipeline stopped", self, error)
            return

        executor = self._current()
        if executor is None:
            self._could_not_find_error(error)
            return

        executor.destroy()
        logger.debug("%s fail: %s (%r, kill=%s)", self, executor, error, kill)

        self.error = error
        self.context.hooks.execute_on_error(error)
        self.fail_handler(self, error, kill)

        if not kill:
            self._executor_done_handler()
        else:
            self._finish()
            self.remove_executor(executor)

    def _could_not_find_error(self, error: Any = None) -> None:
        # A torn down pipeline legitimately loses its executors mid-flight.
        if self.destroyed:
            return

        executors = ", ".join(str(executor) for executor in self._executors) or f"No executors found on {self}"
        logger.error(
            "%s: could not find executor to destroy it!\n\t- Executor index: %d\n\t- All executors: %s%s",
            self,
            self.index,
            executors,
            f"\n\t- Executor failure that triggered this was: {error!r}" if error is not None else "",
        )

    def __str__(self) -> str:
        return f"{self.id}[{self.name}]"

    def __repr__(self) -> str:
        return f"<{self} index={self.index} running={self.running}>"


def run_pipeline(
    executees: Sequence[Any],
    event: "Event",
    done_handler: "PipelineDoneHandler",
    fail_handler: "PipelineFailHandler",
    context: Optional[Context] = None,
) -> Pipeline:
    """Build and run a controller-less pipeline for a list of executees."""
    pipeline = PipelineFactory(event.type, list(executees)).build(context=context)
    pipeline.run(event, done_handler, fail_handler)
    return pipeline
