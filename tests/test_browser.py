"""
Tests for the shared browser lifecycle.

Covers:
- Lazy launch and reuse of a live handle
- Single launch under concurrent acquire() calls
- Shared failure for concurrent waiters and relaunch afterwards
- Relaunch when the handle dies
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from autolink_proxy.models.session import BrowserState
from autolink_proxy.session_manager.browser import BrowserHandle, BrowserManager

from conftest import FakeHandle


def slow_launcher(result=None, error=None, delay=0.05):
    calls = {"count": 0}

    async def _launch():
        calls["count"] += 1
        await asyncio.sleep(delay)
        if error is not None:
            raise error
        return result or FakeHandle()

    return _launch, calls


class TestAcquire:

    @pytest.mark.asyncio
    async def test_launches_lazily_and_reuses_handle(self):
        handle = FakeHandle()
        launcher = AsyncMock(return_value=handle)
        manager = BrowserManager(launcher)

        assert manager.state is BrowserState.EMPTY
        launcher.assert_not_awaited()

        first = await manager.acquire()
        second = await manager.acquire()

        assert first is handle
        assert second is handle
        assert launcher.await_count == 1
        assert manager.state is BrowserState.READY

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_launch(self):
        launcher, calls = slow_launcher()
        manager = BrowserManager(launcher)

        handles = await asyncio.gather(*(manager.acquire() for _ in range(5)))

        assert calls["count"] == 1
        assert all(h is handles[0] for h in handles)

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_failure(self):
        error = RuntimeError("chrome not found")
        launcher, calls = slow_launcher(error=error)
        manager = BrowserManager(launcher)

        results = await asyncio.gather(
            *(manager.acquire() for _ in range(4)), return_exceptions=True
        )

        assert calls["count"] == 1
        assert all(r is error for r in results)
        assert manager.state is BrowserState.FAILED
        assert manager.status().last_error == "chrome not found"

    @pytest.mark.asyncio
    async def test_failed_launch_is_retried_on_next_acquire(self):
        handle = FakeHandle()
        launcher = AsyncMock(side_effect=[RuntimeError("boom"), handle])
        manager = BrowserManager(launcher)

        with pytest.raises(RuntimeError, match="boom"):
            await manager.acquire()

        assert await manager.acquire() is handle
        assert launcher.await_count == 2
        assert manager.state is BrowserState.READY
        assert manager.status().last_error is None

    @pytest.mark.asyncio
    async def test_dead_handle_triggers_relaunch(self):
        dead, fresh = FakeHandle(), FakeHandle()
        launcher = AsyncMock(side_effect=[dead, fresh])
        manager = BrowserManager(launcher)

        assert await manager.acquire() is dead
        dead.is_alive = False

        assert await manager.acquire() is fresh
        assert launcher.await_count == 2
        dead.close.assert_awaited_once()
        fresh.close.assert_not_awaited()


class TestClose:

    @pytest.mark.asyncio
    async def test_close_shuts_down_handle(self):
        handle = FakeHandle()
        manager = BrowserManager(AsyncMock(return_value=handle))
        await manager.acquire()

        await manager.close()

        handle.close.assert_awaited_once()
        assert manager.state is BrowserState.EMPTY
        assert manager.status().alive is False

    @pytest.mark.asyncio
    async def test_close_without_browser_is_noop(self):
        manager = BrowserManager(AsyncMock())
        await manager.close()
        assert manager.state is BrowserState.EMPTY


class TestBrowserHandle:

    @pytest.mark.asyncio
    async def test_context_close_marks_handle_dead(self):
        context = MagicMock()
        handle = BrowserHandle(context)

        event, callback = context.on.call_args.args
        assert event == "close"
        assert handle.is_alive

        callback(context)
        assert not handle.is_alive

    @pytest.mark.asyncio
    async def test_close_stops_context_browser_and_driver(self):
        context = MagicMock()
        context.close = AsyncMock()
        browser = MagicMock()
        browser.close = AsyncMock()
        on_close = AsyncMock()

        handle = BrowserHandle(context, browser=browser, on_close=on_close)
        await handle.close()

        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        on_close.assert_awaited_once()
        assert not handle.is_alive

    @pytest.mark.asyncio
    async def test_new_page_comes_from_shared_context(self):
        context = MagicMock()
        page = MagicMock()
        context.new_page = AsyncMock(return_value=page)

        handle = BrowserHandle(context)

        assert await handle.new_page() is page


def test_unknown_engine_rejected():
    with pytest.raises(ValueError, match="Unsupported browser engine"):
        BrowserManager(engine="netscape")


class TestLaunchChromium:

    @pytest.fixture
    def playwright(self, monkeypatch):
        from autolink_proxy.session_manager import browser as browser_module

        context = MagicMock()
        browser = MagicMock()
        browser.new_context = AsyncMock(return_value=context)
        pw = MagicMock()
        pw.chromium.launch = AsyncMock(return_value=browser)
        pw.chromium.launch_persistent_context = AsyncMock(return_value=context)
        pw.stop = AsyncMock()
        starter = MagicMock()
        starter.start = AsyncMock(return_value=pw)
        monkeypatch.setattr(browser_module, "async_playwright", lambda: starter)
        return pw

    @pytest.mark.asyncio
    async def test_fixed_flags_and_shared_context(self, playwright):
        from autolink_proxy.constants import CHROMIUM_ARGS, USER_AGENT, VIEWPORT
        from autolink_proxy.session_manager.browser import launch_chromium

        handle = await launch_chromium(headless=True, executable_path="/usr/bin/chromium")

        playwright.chromium.launch.assert_awaited_once_with(
            headless=True,
            args=CHROMIUM_ARGS,
            timeout=60_000,
            executable_path="/usr/bin/chromium",
        )
        browser = playwright.chromium.launch.return_value
        browser.new_context.assert_awaited_once_with(user_agent=USER_AGENT, viewport=VIEWPORT)
        assert "--no-sandbox" in CHROMIUM_ARGS and "--disable-gpu" in CHROMIUM_ARGS
        assert handle.is_alive

    @pytest.mark.asyncio
    async def test_profile_dir_uses_persistent_context(self, playwright, tmp_path):
        from autolink_proxy.session_manager.browser import launch_chromium

        await launch_chromium(headless=False, user_data_dir=tmp_path)

        playwright.chromium.launch.assert_not_awaited()
        args, kwargs = playwright.chromium.launch_persistent_context.await_args
        assert args == (str(tmp_path),)
        assert kwargs["headless"] is False
        assert "executable_path" not in kwargs

    @pytest.mark.asyncio
    async def test_launch_error_stops_driver_and_propagates(self, playwright):
        from autolink_proxy.session_manager.browser import launch_chromium

        playwright.chromium.launch = AsyncMock(side_effect=RuntimeError("Executable doesn't exist"))

        with pytest.raises(RuntimeError, match="Executable"):
            await launch_chromium()

        playwright.stop.assert_awaited_once()
