# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from ringflow.core.context import Context
from ringflow.core.event import Event
from ringflow.core.pipeline import Pipeline, PipelineFactory
from ringflow.runtime.bus import Bus
from ringflow.runtime.controller import Controller, ControllerOptions


class PipelineRecorder:
    """
    Collects the outcome handlers a pipeline reports to. ``settled`` is set on
    done, or on a fatal failure.
    """

    def __init__(self) -> None:
        self.settled = asyncio.Event()
        self.outcome = None
        self.done_calls = 0
        self.failures = []

    def on_done(self, pipeline) -> None:
        self.done_calls += 1
        self.outcome = "done"
        self.settled.set()

    def on_fail(self, pipeline, error, kill=False) -> None:
        self.failures.append((error, kill))
        if kill:
            self.outcome = "killed"
            self.settled.set()

    async def wait(self, timeout: float = 0.5) -> None:
        await asyncio.wait_for(self.settled.wait(), timeout)


@pytest.fixture
def context():
    """A fresh identity/registry context."""
    ctx = Context()
    yield ctx
    ctx.teardown()


@pytest.fixture
def bus(context):
    """An in-process bus sharing the test context."""
    return Bus(context)


@pytest.fixture
def controller(bus):
    """A controller carrying the someInjection default."""
    return Controller("TestController", bus, ControllerOptions(injections={"someInjection": {"test": "test"}}))


@pytest.fixture
def fake_controller():
    """A stand-in controller with no injections."""
    return SimpleNamespace(name="FakeController", injections={})


@pytest.fixture
def mock_hook():
    """An inspector hook recording every call."""
    return MagicMock(spec=["on_dispatch", "on_executor_end", "on_error"])


@pytest.fixture
def recorder():
    return PipelineRecorder()


@pytest.fixture
def run_executees(context, recorder):
    """
    Run executees in a controller-less pipeline against a fresh event and
    wait until it settles.
    """

    async def _run(executees, detail=None, wait=True):
        event = Event("test", detail)
        pipeline: Pipeline = PipelineFactory("test", executees).build(context=context)
        pipeline.run(event, recorder.on_done, recorder.on_fail)
        if wait:
            await recorder.wait()
        return pipeline

    return _run
