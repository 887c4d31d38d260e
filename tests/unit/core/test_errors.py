# tests/unit/core/test_errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from ringflow.core.errors import (
    ControllerNotFoundError,
    DoubleDispatchError,
    DuplicateListenerError,
    EmptyPipelineError,
    EventFailedError,
    InvalidControllerError,
    MissingEventError,
    PipelineRunningError,
    PipelineTimeoutError,
    RingflowError,
    UnresolvedArgumentError,
    UnsupportedExecuteeError,
)


@pytest.mark.parametrize(
    "error_class",
    [
        ControllerNotFoundError,
        DoubleDispatchError,
        DuplicateListenerError,
        EmptyPipelineError,
        InvalidControllerError,
        MissingEventError,
        PipelineRunningError,
        PipelineTimeoutError,
    ],
)
def test_errors_share_base(error_class):
    err = error_class("message")
    assert isinstance(err, RingflowError)
    assert str(err) == "message"


def test_unsupported_executee_names_type():
    err = UnsupportedExecuteeError(42)
    assert err.executee == 42
    assert "int" in str(err)


def test_unresolved_argument_details():
    err = UnresolvedArgumentError("user", ("user", "api"), origin="app.py:10 in main", owner="FunctionExecutor#3")
    assert err.name == "user"
    assert err.expected == ["user", "api"]
    message = str(err)
    assert "FunctionExecutor#3" in message
    assert "'user'" in message
    assert "app.py:10 in main" in message


def test_unresolved_argument_without_origin():
    err = UnresolvedArgumentError("user", ["user"])
    assert "unknown origin" in str(err)
    assert str(err).startswith("handler")


def test_event_failed_error_keeps_payload():
    err = EventFailedError("Event[save, Event#1]", "bad input")
    assert err.error == "bad input"
    assert "bad input" in str(err)
