from __future__ import annotations

from fastapi import APIRouter, Response

from hook_runner.observability.metrics import render_prometheus

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def metrics() -> Response:
    payload, content_type = render_prometheus()
    return Response(content=payload, media_type=content_type)
