# ringflow/interfaces/types.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Any, Callable, Dict

EventType = str
Detail = Dict[str, Any]

# Callback Types
DoneContinuation = Callable[[], None]
FailContinuation = Callable[..., None]
PipelineDoneHandler = Callable[[Any], None]
PipelineFailHandler = Callable[[Any, Any, bool], None]
NotificationHandler = Callable[[Any], None]
