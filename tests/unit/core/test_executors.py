# tests/unit/core/test_executors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import asyncio
import logging

import pytest

from ringflow.core.arguments import requires
from ringflow.core.errors import UnresolvedArgumentError
from ringflow.core.executors import (
    Command,
    ConditionalExecutor,
    ExecutorState,
    FunctionExecutor,
    ParallelExecutor,
    PromiseExecutor,
)
from ringflow.core.pipeline import PipelineFactory
from ringflow.core.specs import iif


class Thenable:
    def __init__(self, value=None, error=None):
        self.value = value
        self.error = error

    def then(self, on_resolve, on_reject):
        if self.error is not None:
            on_reject(self.error)
        else:
            on_resolve(self.value)


class SaveUser(Command):
    def execute(self, user, saved):
        saved.append(user)


class RequiresCommand(Command):
    requires = ("user",)

    def execute(self, *args):
        self.seen = args


class AsyncCommand(Command):
    async def execute(self, user):
        await asyncio.sleep(0)
        return f"saved {user}"


def test_executor_starts_not_started(context):
    pipeline = PipelineFactory("save", [lambda: None]).build(context=context)
    executor = FunctionExecutor(pipeline, lambda user: None)
    assert executor.state is ExecutorState.NOT_STARTED
    assert executor.arg_names == ("user",)
    assert executor.id.startswith("FunctionExecutor#")
    assert executor.controller is None


def test_done_outside_running_is_ignored(context, caplog):
    pipeline = PipelineFactory("save", [lambda: None]).build(context=context)
    executor = FunctionExecutor(pipeline, lambda: None)
    with caplog.at_level(logging.WARNING, logger="ringflow.core.executors"):
        executor.done()
        executor.fail(ValueError("late"))
    assert executor.state is ExecutorState.NOT_STARTED
    assert "ignoring" in caplog.text


@pytest.mark.asyncio
async def test_coroutine_function_result(run_executees):
    seen = []

    async def fetch(user):
        await asyncio.sleep(0)
        return f"fetched {user}"

    await run_executees([fetch, lambda last_promise_result: seen.append(last_promise_result)], {"user": "ada"})
    assert seen == ["fetched ada"]


@pytest.mark.asyncio
async def test_coroutine_failure_is_non_fatal(run_executees, recorder):
    seen = []
    err = ValueError("remote down")

    async def fetch():
        raise err

    await run_executees([fetch, lambda last_promise_error: seen.append(last_promise_error)])
    assert recorder.failures == [(err, False)]
    assert seen == [err]


@pytest.mark.asyncio
async def test_manual_done(run_executees):
    calls = []

    def later(done):
        asyncio.get_running_loop().call_later(0.01, done)
        calls.append("started")

    await run_executees([later, lambda: calls.append("after")])
    assert calls == ["started", "after"]


@pytest.mark.asyncio
async def test_command_injection(run_executees):
    saved = []
    await run_executees([SaveUser], {"user": "ada", "saved": saved})
    assert saved == ["ada"]


@pytest.mark.asyncio
async def test_command_requires(run_executees):
    pipeline = await run_executees([RequiresCommand], {"user": "ada"})
    command = pipeline.executors[0]
    assert command.arg_names == ("user",)
    assert command.seen == ("ada",)


@pytest.mark.asyncio
async def test_async_command(run_executees):
    seen = []
    await run_executees([AsyncCommand, lambda last_promise_result: seen.append(last_promise_result)], {"user": "ada"})
    assert seen == ["saved ada"]


@pytest.mark.asyncio
async def test_command_missing_argument(run_executees, recorder):
    await run_executees([SaveUser], {"user": "ada"})
    error, kill = recorder.failures[0]
    assert isinstance(error, UnresolvedArgumentError)
    assert error.name == "saved"
    assert kill


@pytest.mark.asyncio
async def test_future_promise(run_executees):
    loop = asyncio.get_running_loop()
    future = loop.create_future()
    seen = []
    loop.call_soon(future.set_result, "value")

    pipeline = await run_executees([future, lambda last_promise_result: seen.append(last_promise_result)])
    assert isinstance(pipeline.executors[0], PromiseExecutor)
    assert seen == ["value"]


@pytest.mark.asyncio
async def test_thenable_promise(run_executees, recorder):
    seen = []
    await run_executees(
        [
            Thenable(value="resolved"),
            lambda last_promise_result: seen.append(last_promise_result),
            Thenable(error="rejected"),
            lambda last_promise_error: seen.append(last_promise_error),
        ]
    )
    assert seen == ["resolved", "rejected"]
    assert recorder.failures == [("rejected", False)]


@pytest.mark.asyncio
async def test_parallel_runs_concurrently(run_executees):
    order = []

    async def a():
        order.append("a-start")
        await asyncio.sleep(0.01)
        order.append("a-end")

    async def b():
        order.append("b-start")
        await asyncio.sleep(0.01)
        order.append("b-end")

    pipeline = await run_executees([[a, b], lambda: order.append("after")])

    assert isinstance(pipeline.executors[0], ParallelExecutor)
    assert order[:2] == ["a-start", "b-start"]
    assert set(order[2:4]) == {"a-end", "b-end"}
    assert order[4] == "after"


@pytest.mark.asyncio
async def test_parallel_waits_for_all_before_failing(run_executees, recorder):
    order = []
    err = ValueError("a failed")

    def a():
        raise err

    async def b():
        await asyncio.sleep(0.01)
        order.append("b-end")

    await run_executees([[a, b], lambda: order.append("after")])

    assert order == ["b-end", "after"]
    assert recorder.failures == [(err, False)]


@pytest.mark.asyncio
async def test_empty_parallel_group(run_executees, recorder):
    await run_executees([[], lambda: None])
    assert recorder.done_calls == 1


@pytest.mark.asyncio
async def test_conditional_runs_one_branch(run_executees):
    calls = []
    spec = iif(lambda flag: flag, lambda: calls.append("yes"), lambda: calls.append("no"))

    pipeline = await run_executees([spec], {"flag": False})

    conditional = pipeline.executors[0]
    assert isinstance(conditional, ConditionalExecutor)
    assert conditional.outcome is False
    assert calls == ["no"]


@pytest.mark.asyncio
async def test_conditional_omitted_branch(run_executees, recorder):
    calls = []
    await run_executees([iif(lambda: False, lambda: calls.append("yes")), lambda: calls.append("after")])
    assert calls == ["after"]
    assert recorder.done_calls == 1


@pytest.mark.asyncio
async def test_conditional_async_predicate(run_executees):
    calls = []

    async def allowed(user):
        await asyncio.sleep(0)
        return user == "ada"

    await run_executees([iif(allowed, lambda: calls.append("allowed"))], {"user": "ada"})
    assert calls == ["allowed"]


@pytest.mark.asyncio
async def test_conditional_forwards_branch_failure(run_executees, recorder):
    def branch(fail):
        fail("nope", True)

    await run_executees([iif(lambda: True, branch), lambda: None])
    assert recorder.failures == [("nope", True)]
    assert recorder.outcome == "killed"


@pytest.mark.asyncio
async def test_late_promise_is_discarded(context, recorder):
    from ringflow.core.event import Event

    loop = asyncio.get_running_loop()
    future = loop.create_future()
    pipeline = PipelineFactory("save", [future]).build(context=context)
    pipeline.run(Event("save"), recorder.on_done, recorder.on_fail)

    pipeline.destroy()
    future.set_result("too late")
    await asyncio.sleep(0.01)

    assert recorder.done_calls == 0
    assert pipeline.event.last_promise_result is None


@pytest.mark.asyncio
async def test_requires_decorator_on_function(run_executees):
    seen = []

    @requires("user")
    def handler(*args):
        seen.extend(args)

    await run_executees([handler], {"user": "ada"})
    assert seen == ["ada"]
