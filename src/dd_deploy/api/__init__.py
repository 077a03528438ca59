"""API module for the dd-deploy receiver."""

from .health import router as health_router
from .receiver import router as receiver_router

__all__ = [
    "health_router",
    "receiver_router",
]
