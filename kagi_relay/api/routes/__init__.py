from __future__ import annotations

from kagi_relay.api.routes.commands import router as commands_router
from kagi_relay.api.routes.health import router as health_router

__all__ = ["commands_router", "health_router"]
