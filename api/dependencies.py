"""
FastAPI Dependencies.

The event bus is built once in the app lifespan and stored on app.state;
routes receive it through get_event_bus instead of a module global.
"""
from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Request

# Load environment variables ONCE before any settings objects are created
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")

from core.domain.event_bus import EventBus  # noqa: E402

logger = logging.getLogger(__name__)


def get_event_bus(request: Request) -> EventBus:
    """Event bus built at startup for this application."""
    bus = getattr(request.app.state, "event_bus", None)
    if bus is None:
        raise RuntimeError("Event bus not initialized. Is the app lifespan running?")
    return bus
