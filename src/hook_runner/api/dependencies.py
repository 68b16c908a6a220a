"""Accessors for the long-lived objects stored on ``app.state``.

Coroutines, so FastAPI resolves them on the event loop instead of a worker thread.
"""

from fastapi import Request

from hook_runner.config import Settings
from hook_runner.services.config_store import ConfigStore
from hook_runner.services.dispatcher import WebhookDispatcher
from hook_runner.services.reload_trigger import ReloadTrigger


async def get_config_store(request: Request) -> ConfigStore:
    return request.app.state.config_store


async def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.dispatcher


async def get_reload_trigger(request: Request) -> ReloadTrigger:
    return request.app.state.reload_trigger


async def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
