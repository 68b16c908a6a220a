"""Administrative endpoints.

Disabled unless ``HOOK_RUNNER_ADMIN_TOKEN`` is set.
"""

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel

from hook_runner.api.dependencies import get_app_settings, get_reload_trigger
from hook_runner.config import Settings
from hook_runner.services.reload_trigger import ReloadTrigger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class ReloadResponse(BaseModel):
    reloaded: bool
    generation: int
    message: str
    error_kind: str | None = None


async def require_admin_token(
    x_admin_token: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_app_settings),
) -> None:
    if not settings.admin_token:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    supplied = (x_admin_token or "").encode("utf-8")
    if not hmac.compare_digest(supplied, settings.admin_token.encode("utf-8")):
        logger.warning("Admin token mismatch")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )


@router.post(
    "/reload",
    response_model=ReloadResponse,
    dependencies=[Depends(require_admin_token)],
)
async def reload_config(
    trigger: ReloadTrigger = Depends(get_reload_trigger),
) -> ReloadResponse:
    """Reload the hook file now. A failed reload keeps the previous configuration."""
    result = await trigger.reload_now()
    return ReloadResponse(
        reloaded=result.reloaded,
        generation=result.generation,
        message=result.message,
        error_kind=result.error.kind.value if result.error else None,
    )
