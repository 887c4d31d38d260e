"""
Core package: dispatch handles, executors and pipelines.

Architecture:
- event: the Event dispatch handle and its DONE/FAIL notifications
- arguments: name-based injection of detail values and well-known names
- executors: the executor variants and their lifecycle
- specs, factory: executee inference and executor construction
- pipeline: strictly sequential execution of one executee list
- hooks, context: inspector hooks and per-application identity/registries
"""

# Import order matters to avoid circular dependencies
from .arguments import build_arguments, get_arg_names, requires
from .event import DONE, FAIL, Event, Notification, dispatch
from .executors import (
    Command,
    ConditionalExecutor,
    EventExecutor,
    Executor,
    ExecutorState,
    FunctionExecutor,
    ParallelExecutor,
    PromiseExecutor,
)
from .specs import CommandSpec, ConditionalSpec, EventSpec, FunctionSpec, ParallelSpec, PromiseSpec, iif, to_spec, trigger
from .factory import ExecutorFactory, build_executor
from .hooks import HookManager
from .context import Context
from .pipeline import Pipeline, PipelineFactory, run_pipeline

__all__ = [
    "DONE",
    "FAIL",
    "Command",
    "CommandSpec",
    "ConditionalExecutor",
    "ConditionalSpec",
    "Context",
    "Event",
    "EventExecutor",
    "EventSpec",
    "Executor",
    "ExecutorFactory",
    "ExecutorState",
    "FunctionExecutor",
    "FunctionSpec",
    "HookManager",
    "Notification",
    "ParallelExecutor",
    "ParallelSpec",
    "Pipeline",
    "PipelineFactory",
    "PromiseExecutor",
    "PromiseSpec",
    "build_arguments",
    "build_executor",
    "dispatch",
    "get_arg_names",
    "iif",
    "requires",
    "run_pipeline",
    "to_spec",
    "trigger",
]
