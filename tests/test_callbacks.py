"""Tests for running UI actions on the service event loop."""

import asyncio
import concurrent.futures
import threading

import pytest

from services.dashboard.app import app_state
from services.dashboard.callbacks.updates import run_on_service_loop


@pytest.fixture
def service_loop():
    loop = asyncio.new_event_loop()
    started = threading.Event()
    loop.call_soon(started.set)
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    started.wait(2)
    app_state.loop = loop
    yield loop
    app_state.loop = None
    loop.call_soon_threadsafe(loop.stop)
    thread.join(2)
    loop.close()


class TestRunOnServiceLoop:
    """Test submitting coroutines from the UI thread."""

    def test_returns_result(self, service_loop):
        """Test a finished coroutine hands back its value."""

        async def answer():
            return 42

        assert run_on_service_loop(answer(), timeout=2) == 42

    def test_timeout_cancels_the_action(self, service_loop):
        """Test an action that outlives the timeout is cancelled, not left running."""
        cancelled = threading.Event()

        async def slow_send():
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(concurrent.futures.TimeoutError):
            run_on_service_loop(slow_send(), timeout=0.05)

        assert cancelled.wait(2)

    def test_no_loop(self):
        """Test a missing service loop raises without leaking the coroutine."""

        async def never():
            return None

        app_state.loop = None
        with pytest.raises(RuntimeError):
            run_on_service_loop(never())
