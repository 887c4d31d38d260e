"""
Runtime package: the in-process bus and the controllers listening on it.

Architecture:
- Bus delivers dispatched events to handlers registered per event type
- Controller maps event types to pipelines and relays their outcomes
"""

from .bus import Bus
from .controller import Controller, ControllerOptions

__all__ = ["Bus", "Controller", "ControllerOptions"]
