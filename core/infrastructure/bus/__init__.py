"""Event bus infrastructure - transport-neutral parts and the factory."""
from .dispatch import invoke_handler
from .factory import create_event_bus, get_event_bus, shutdown_event_bus
from .in_memory import HandlerFailure, InMemoryEventBus
from .lifecycle import close_quietly, install_signal_handlers

__all__ = [
    "HandlerFailure",
    "InMemoryEventBus",
    "close_quietly",
    "create_event_bus",
    "get_event_bus",
    "install_signal_handlers",
    "invoke_handler",
    "shutdown_event_bus",
]
