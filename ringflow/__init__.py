"""ringflow: event-driven pipelines of executors over an in-process bus

Events are dispatched on a bus, caught by zero or more controllers, and each
catching controller runs a pipeline of executors against the event's value
bag. The event aggregates the outcomes and announces DONE or FAIL.

Responsibilities:
    - Dispatch handles that track catching controllers and their outcomes
    - Sequential pipelines of function, command, promise, parallel,
      conditional and sub-event executors
    - Name-based argument injection from the event's value bag
    - Inspector hooks for dispatch, executor end and failures

Cross-cutting Concerns:
    Error Handling:
        - Structured error hierarchy rooted at RingflowError
        - Contract errors raise immediately, user errors become FAIL

    Logging:
        - Standard library logging, one logger per module
        - No handlers installed by the library
"""

from ringflow.core import (
    Command,
    ConditionalSpec,
    Context,
    Event,
    EventSpec,
    Executor,
    ExecutorFactory,
    ExecutorState,
    FunctionSpec,
    HookManager,
    Notification,
    ParallelSpec,
    Pipeline,
    PipelineFactory,
    PromiseSpec,
    CommandSpec,
    dispatch,
    iif,
    requires,
    to_spec,
    trigger,
)
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
from ringflow.runtime import Bus, Controller, ControllerOptions

__version__ = "0.1.0"

__all__ = [
    "Bus",
    "Command",
    "CommandSpec",
    "ConditionalSpec",
    "Context",
    "Controller",
    "ControllerNotFoundError",
    "ControllerOptions",
    "DoubleDispatchError",
    "DuplicateListenerError",
    "EmptyPipelineError",
    "Event",
    "EventFailedError",
    "EventSpec",
    "Executor",
    "ExecutorFactory",
    "ExecutorState",
    "FunctionSpec",
    "HookManager",
    "InvalidControllerError",
    "MissingEventError",
    "Notification",
    "ParallelSpec",
    "Pipeline",
    "PipelineFactory",
    "PipelineRunningError",
    "PipelineTimeoutError",
    "PromiseSpec",
    "RingflowError",
    "UnresolvedArgumentError",
    "UnsupportedExecuteeError",
    "dispatch",
    "iif",
    "requires",
    "to_spec",
    "trigger",
]
