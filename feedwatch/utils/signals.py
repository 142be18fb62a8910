"""Stop the monitoring loop cleanly on SIGTERM/SIGINT."""

from __future__ import annotations

import asyncio
import signal
import threading
from collections.abc import Callable, Sequence
from typing import Any

from .logging import setup_logger

logger = setup_logger(__name__)

DEFAULT_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT)


def _handler_name(handler: Callable[[], Any]) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class GracefulShutdown:
    """
    Ordered teardown for the long-running ``run`` command.

    Handlers run last-registered-first so the monitoring loop is stopped
    before anything it depends on. Each handler may be sync or async; a
    failing handler is logged and the remaining ones still run.
    """

    def __init__(self) -> None:
        self._handlers: list[Callable[[], Any]] = []
        self._started = False
        self._done = asyncio.Event()
        self.failed: list[str] = []

    def register_handler(self, handler: Callable[[], Any]) -> None:
        self._handlers.append(handler)
        logger.debug("Registered shutdown handler %s", _handler_name(handler))

    async def _run(self, handler: Callable[[], Any]) -> None:
        outcome = handler()
        if asyncio.iscoroutine(outcome):
            await outcome

    async def shutdown(self) -> None:
        """Run every handler once; later calls are no-ops."""

        if self._started:
            logger.warning("Shutdown already in progress")
            return
        self._started = True
        logger.info("Shutting down %d handler(s)", len(self._handlers))

        while self._handlers:
            handler = self._handlers.pop()
            name = _handler_name(handler)
            try:
                await self._run(handler)
            except Exception as exc:
                self.failed.append(name)
                logger.error("Shutdown handler %s failed: %s", name, exc, exc_info=True)

        self._done.set()
        logger.info("Shutdown complete", extra={"status": "error" if self.failed else "ok"})

    def is_shutting_down(self) -> bool:
        return self._started

    async def wait_for_shutdown(self) -> None:
        await self._done.wait()


def install_signal_handlers(
    shutdown_manager: GracefulShutdown,
    loop: asyncio.AbstractEventLoop,
    signals: Sequence[signal.Signals] | None = None,
) -> None:
    """
    Trigger ``shutdown_manager.shutdown`` on ``loop`` when a signal arrives.

    Args:
        shutdown_manager: Shutdown manager to trigger
        loop: Running event loop that owns the monitoring task
        signals: Signals to handle (defaults to SIGTERM and SIGINT)
    """
    if threading.current_thread() is not threading.main_thread():
        logger.info("Skipping signal handler installation outside main thread")
        return

    def trigger(sig: signal.Signals) -> None:
        logger.info("Received %s, stopping monitoring", sig.name)
        loop.create_task(shutdown_manager.shutdown())

    for sig in signals or DEFAULT_SIGNALS:
        try:
            loop.add_signal_handler(sig, trigger, sig)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(
                sig, lambda signum, _frame: loop.call_soon_threadsafe(trigger, signal.Signals(signum))
            )
        logger.info("Installed signal handler for %s", sig.name)
