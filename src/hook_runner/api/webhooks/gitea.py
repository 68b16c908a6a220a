"""Gitea webhook handler.

Accepts POSTs on any path, as the forge's webhook URL is free-form. The
sender always gets a 200 with a generic status; routing outcomes are only
visible in the logs.
"""

import logging

from fastapi import APIRouter, Depends, Request

from hook_runner.api.dependencies import get_dispatcher
from hook_runner.core.logging import correlation_id_ctx
from hook_runner.schemas.execution import WebhookResponse
from hook_runner.services.dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

# Gitea sends both; older Gogs-compatible senders only the latter
EVENT_HEADERS = ("X-Gitea-Event", "X-Gogs-Event")


def get_event_type(request: Request) -> str | None:
    for header in EVENT_HEADERS:
        value = request.headers.get(header)
        if value:
            return value.strip()
    return None


@router.post("/{path:path}", response_model=WebhookResponse)
async def gitea_webhook(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
) -> WebhookResponse:
    """
    Gitea push webhook handler.

    Returns:
        - 200 in every case, with status accepted, ignored, rejected or error
    """
    client = request.client
    report = await dispatcher.handle(
        get_event_type(request),
        request.body,
        remote_addr=f"{client.host}:{client.port}" if client else None,
    )
    return WebhookResponse(
        status=report.status,
        message=report.message,
        correlation_id=correlation_id_ctx.get(),
    )
