# tests/unit/test_protocols.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from ringflow.core.hooks import HookManager
from ringflow.interfaces.protocols import BusProtocol, InspectorHook, Thenable
from ringflow.runtime.bus import Bus


class PrintingHook:
    def on_dispatch(self, event):
        pass

    def on_executor_end(self, executor):
        pass

    def on_error(self, error):
        pass


class Deferred:
    def then(self, on_resolve, on_reject):
        on_resolve(None)


def test_bus_satisfies_protocol():
    assert isinstance(Bus(), BusProtocol)
    assert not isinstance(object(), BusProtocol)


def test_inspector_hook_protocol():
    hook = PrintingHook()
    assert isinstance(hook, InspectorHook)
    assert HookManager([hook]).hooks == [hook]


def test_thenable_protocol():
    assert isinstance(Deferred(), Thenable)
    assert not isinstance("then", Thenable)
