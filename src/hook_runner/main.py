"""FastAPI application entry point.

Wires the configuration store, command runner, dispatcher and reload task
into the HTTP application.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from hook_runner import __version__
from hook_runner.api.admin import router as admin_router
from hook_runner.api.health import router as health_router
from hook_runner.api.metrics import router as metrics_router
from hook_runner.api.webhooks.gitea import router as gitea_router
from hook_runner.config import Settings, get_settings
from hook_runner.core.logging import setup_logging, shutdown_logging
from hook_runner.observability.middleware import (
    CorrelationIdMiddleware,
    PrometheusMetricsMiddleware,
)
from hook_runner.services.command_runner import CommandRunner, SubprocessCommandRunner
from hook_runner.services.config_store import ConfigStore
from hook_runner.services.dispatcher import WebhookDispatcher
from hook_runner.services.reload_trigger import ReloadTrigger

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup/shutdown events."""
    settings: Settings = app.state.settings
    store: ConfigStore = app.state.config_store
    trigger: ReloadTrigger = app.state.reload_trigger

    # Startup
    if app.state.manage_logging:
        setup_logging(log_file=store.current().logfile, settings=settings)
    logger.info(
        "Hook runner starting",
        extra={
            "version": __version__,
            "environment": settings.environment,
            "config_path": store.path,
            "repositories": len(store.current().repositories),
        },
    )

    await trigger.start(install_signal_handler=settings.enable_reload_signal)

    yield

    # Shutdown
    logger.info("Hook runner shutting down")
    await trigger.stop()
    if app.state.manage_logging:
        shutdown_logging()


def create_app(
    settings: Settings | None = None,
    *,
    store: ConfigStore | None = None,
    runner: CommandRunner | None = None,
    manage_logging: bool = True,
) -> FastAPI:
    """
    Application factory for creating the FastAPI app.

    Args:
        settings: Process settings, defaults to the cached environment settings
        store: Configuration store; loaded from ``settings.config_path`` when
            omitted, in which case a ``ConfigError`` propagates
        runner: Command runner, defaults to a subprocess runner built from settings
        manage_logging: Configure logging to the hook file's ``Logfile`` on startup

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    store = store or ConfigStore.from_file(settings.config_path)
    runner = runner or SubprocessCommandRunner.from_settings(settings)

    app = FastAPI(
        title="Hook Runner",
        description="Runs local commands for verified Gitea push webhooks",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.manage_logging = manage_logging
    app.state.config_store = store
    app.state.dispatcher = WebhookDispatcher(
        store, runner, max_concurrent_dispatches=settings.max_concurrent_dispatches
    )
    app.state.reload_trigger = ReloadTrigger(store)

    app.add_middleware(PrometheusMetricsMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    # The webhook route accepts POST on any path, so it goes last
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(admin_router)
    app.include_router(gitea_router)

    return app
