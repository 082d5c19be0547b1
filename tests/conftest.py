"""
Pytest fixtures for the autolink proxy test suite.
"""

from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from aiohttp.test_utils import TestClient, TestServer

from autolink_proxy.session_manager.browser import BrowserManager
from autolink_proxy.session_manager.manager import SessionManager, create_app


def build_page(url: str = "about:blank", evaluate_result=None) -> MagicMock:
    """A stand-in for a Playwright page with async methods mocked."""
    page = MagicMock()
    page.url = url
    page.goto = AsyncMock(return_value=None)
    page.evaluate = AsyncMock(return_value=evaluate_result)
    page.close = AsyncMock()
    page.fill = AsyncMock()
    page.click = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.inner_text = AsyncMock(return_value="")
    page.query_selector = AsyncMock(return_value=None)
    page.keyboard.press = AsyncMock()
    page.context.add_cookies = AsyncMock()
    return page


class FakeHandle:
    """Minimal BrowserHandle replacement handing out a fixed page."""

    def __init__(self, page=None):
        self.page = page or build_page()
        self.is_alive = True
        self.new_page = AsyncMock(return_value=self.page)
        self.close = AsyncMock()


@pytest.fixture
def page() -> MagicMock:
    return build_page()


@pytest.fixture
def handle(page) -> FakeHandle:
    return FakeHandle(page)


@pytest.fixture
def make_manager() -> Callable[..., SessionManager]:
    """Build a SessionManager around a fake launcher and a mocked file transport."""

    def _make(launcher=None, handle=None, file_handler=None, credentials=None):
        if launcher is None:
            launcher = AsyncMock(return_value=handle or FakeHandle())
        if file_handler is None:
            file_handler = lambda request: httpx.Response(404)
        return SessionManager(
            browser=BrowserManager(launcher, engine="chromium"),
            credentials=credentials,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(file_handler)),
            target_site_url="https://target.example/vi",
            api_path="/api/autolink",
        )

    return _make


@pytest.fixture
async def make_client():
    """Start the aiohttp app around a given SessionManager."""
    clients = []

    async def _make(manager: SessionManager) -> TestClient:
        client = TestClient(TestServer(create_app(manager)))
        await client.start_server()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.close()
