# tests/unit/runtime/test_bus.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

from ringflow.core.context import Context
from ringflow.core.event import Event
from ringflow.runtime.bus import Bus


def test_bus_creates_context():
    assert isinstance(Bus().context, Context)


def test_add_and_remove_listener(bus):
    handler = MagicMock()
    assert not bus.has_listeners("save")

    bus.add_listener("save", handler)
    assert bus.has_listeners("save")

    bus.remove_listener("save", handler)
    bus.remove_listener("save", handler)
    assert not bus.has_listeners("save")


def test_dispatch_calls_handlers_in_order(bus):
    calls = []
    bus.add_listener("save", lambda event: calls.append(("first", event)))
    bus.add_listener("save", lambda event: calls.append(("second", event)))
    bus.add_listener("other", lambda event: calls.append(("other", event)))

    event = Event("save", require_catch=False).dispatch(bus)

    assert calls == [("first", event), ("second", event)]
    assert event.target is bus


def test_dispatch_assigns_id_and_notifies_hooks(mock_hook):
    context = Context(hooks=[mock_hook])
    bus = Bus(context)
    event = Event("save", require_catch=False).dispatch(bus)

    assert event.id is not None
    mock_hook.on_dispatch.assert_called_once_with(event)


def test_uncaught_event_is_not_retained(bus, context):
    Event("save", require_catch=False).dispatch(bus)
    assert context.events == []


def test_caught_event_is_retained(bus, context, fake_controller):
    bus.add_listener("save", lambda event: event.mark_caught(fake_controller))
    event = Event("save").dispatch(bus)
    assert context.events == [event]
