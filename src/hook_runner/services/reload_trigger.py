"""Out-of-band configuration reload.

A dedicated asyncio task waits for reload requests (SIGHUP or
:meth:`ReloadTrigger.request_reload` from any thread) and runs
:meth:`ConfigStore.reload` on a worker thread. Requests that arrive while a
reload is running are coalesced into one follow-up reload.
"""

from __future__ import annotations

import asyncio
import logging
import signal

from hook_runner.services.config_store import ConfigStore, ReloadResult

logger = logging.getLogger(__name__)


def ignore_reload_signal(reload_signal: int | None = None) -> bool:
    """
    Ignore the reload signal until a :class:`ReloadTrigger` takes it over.

    The default SIGHUP action terminates the process, so a reload requested
    during startup would otherwise kill the server before the loop handler exists.
    """
    if reload_signal is None:
        reload_signal = getattr(signal, "SIGHUP", None)
    if reload_signal is None:
        return False
    signal.signal(reload_signal, signal.SIG_IGN)
    return True


class ReloadTrigger:
    def __init__(self, store: ConfigStore, *, reload_signal: int | None = None):
        self._store = store
        if reload_signal is None:
            reload_signal = getattr(signal, "SIGHUP", None)
        self._signal = reload_signal
        self._pending = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._signal_installed = False
        self.last_result: ReloadResult | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, *, install_signal_handler: bool = True) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.create_task(self._run(), name="config-reload")
        if install_signal_handler:
            self.install_signal_handler()

    async def stop(self) -> None:
        self.remove_signal_handler()
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def install_signal_handler(self) -> bool:
        """Register the reload signal on the running loop. Returns False if unsupported."""
        if self._loop is None or self._signal is None:
            return False
        try:
            self._loop.add_signal_handler(self._signal, self._on_signal)
        except (NotImplementedError, RuntimeError, ValueError) as e:
            logger.warning(
                "Reload signal handler not installed",
                extra={"signal": int(self._signal), "error": str(e)},
            )
            return False
        self._signal_installed = True
        logger.info(
            "Reload signal handler installed",
            extra={"signal": signal.Signals(self._signal).name},
        )
        return True

    def remove_signal_handler(self) -> None:
        if self._signal_installed and self._loop is not None and self._signal is not None:
            self._loop.remove_signal_handler(self._signal)
        self._signal_installed = False

    def _on_signal(self) -> None:
        logger.info("Reload signal received")
        self._pending.set()

    def request_reload(self) -> None:
        """Ask the reload task to reload. Safe to call from any thread."""
        if self._loop is None:
            raise RuntimeError("ReloadTrigger is not started")
        self._loop.call_soon_threadsafe(self._pending.set)

    async def reload_now(self) -> ReloadResult:
        """Reload immediately and return the result."""
        result = await asyncio.to_thread(self._store.reload)
        self.last_result = result
        return result

    async def _run(self) -> None:
        while True:
            await self._pending.wait()
            self._pending.clear()
            try:
                await self.reload_now()
            except Exception as e:
                # reload() reports config errors as results; anything else is a bug
                logger.error(
                    "Unexpected error during configuration reload",
                    extra={"error": str(e)},
                    exc_info=True,
                )
