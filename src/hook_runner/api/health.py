"""Health check endpoints for monitoring and load balancer probes."""
import logging
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from hook_runner.api.dependencies import get_config_store, get_reload_trigger
from hook_runner.services.config_store import ConfigStore
from hook_runner.services.reload_trigger import ReloadTrigger

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthStatus(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy", "degraded"]
    version: str
    config_generation: int
    repositories: int
    details: dict | None = None


@router.get("/health", response_model=HealthStatus)
async def health_check(store: ConfigStore = Depends(get_config_store)) -> HealthStatus:
    """
    Basic health check endpoint.

    Returns 200 if the service is running and reports which configuration
    generation is active.
    """
    from hook_runner import __version__

    snapshot = store.snapshot()
    return HealthStatus(
        status="healthy",
        version=__version__,
        config_generation=snapshot.generation,
        repositories=len(snapshot.config.repositories),
    )


@router.get("/health/ready", response_model=HealthStatus)
async def readiness_check(
    store: ConfigStore = Depends(get_config_store),
    trigger: ReloadTrigger = Depends(get_reload_trigger),
) -> HealthStatus:
    """
    Readiness check.

    Degraded when the reload task is not running or the most recent reload
    failed (the previous configuration is still being served).
    """
    from hook_runner import __version__

    snapshot = store.snapshot()
    details: dict = {
        "config_path": snapshot.source_path,
        "loaded_at": snapshot.loaded_at.isoformat(),
    }
    status: Literal["healthy", "unhealthy", "degraded"] = "healthy"

    if not trigger.running:
        status = "degraded"
        details["reload_task"] = "stopped"

    last = trigger.last_result
    if last is not None and not last.reloaded:
        status = "degraded"
        details["last_reload_error"] = last.message

    return HealthStatus(
        status=status,
        version=__version__,
        config_generation=snapshot.generation,
        repositories=len(snapshot.config.repositories),
        details=details,
    )


@router.get("/health/live")
async def liveness_check() -> dict:
    """
    Liveness check - minimal endpoint.

    Returns 200 if process is alive.
    """
    return {"alive": True}
