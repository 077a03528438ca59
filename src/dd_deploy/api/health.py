"""Health check endpoint."""

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter

from dd_deploy import __version__

router = APIRouter()


@router.get("/health", response_model=Dict[str, str])
async def health_check() -> Dict[str, str]:
    """Simple health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
