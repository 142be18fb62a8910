"""Tests for graceful shutdown handling."""

from __future__ import annotations

import asyncio
import signal
from unittest.mock import AsyncMock, Mock

import pytest

from feedwatch.utils.signals import GracefulShutdown, install_signal_handlers


@pytest.mark.asyncio
async def test_handlers_run_in_reverse_order():
    calls: list[str] = []
    shutdown = GracefulShutdown()
    shutdown.register_handler(lambda: calls.append("first"))

    async def second() -> None:
        calls.append("second")

    shutdown.register_handler(second)

    await shutdown.shutdown()

    assert calls == ["second", "first"]
    assert shutdown.is_shutting_down()


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_others():
    survivor = AsyncMock()
    shutdown = GracefulShutdown()
    shutdown.register_handler(survivor)
    shutdown.register_handler(Mock(side_effect=RuntimeError("boom")))

    await shutdown.shutdown()

    survivor.assert_awaited_once()


@pytest.mark.asyncio
async def test_shutdown_runs_once_and_releases_waiters():
    handler = Mock()
    shutdown = GracefulShutdown()
    shutdown.register_handler(handler)
    waiter = asyncio.create_task(shutdown.wait_for_shutdown())

    await shutdown.shutdown()
    await shutdown.shutdown()
    await asyncio.wait_for(waiter, timeout=1)

    handler.assert_called_once()


@pytest.mark.asyncio
async def test_signal_triggers_shutdown():
    shutdown = GracefulShutdown()
    previous = signal.getsignal(signal.SIGUSR1)
    try:
        install_signal_handlers(shutdown, asyncio.get_running_loop(), [signal.SIGUSR1])
        signal.raise_signal(signal.SIGUSR1)
        await asyncio.wait_for(shutdown.wait_for_shutdown(), timeout=1)
    finally:
        signal.signal(signal.SIGUSR1, previous)

    assert shutdown.is_shutting_down()
