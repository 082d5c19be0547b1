"""Autolink proxy HTTP service.

Runs a small aiohttp server that resolves links through the target site's
internal API from inside a real browser tab, so the call carries the tab's
cookies and anti-bot tokens.

Endpoints:
    POST /autolink  - Resolve a URL, optionally streaming the resolved file
    POST /login     - Seed cookies and/or sign in to the identity provider
    GET  /status    - Browser and login state
    GET  /health    - Liveness
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional
from urllib.parse import urljoin

import httpx
from aiohttp import web
from pydantic import ValidationError

from ..config import (
    AUTOLINK_API_PATH,
    GOOGLE_EMAIL,
    GOOGLE_PASSWORD,
    HOST,
    LOG_LEVEL,
    PORT,
    TARGET_SITE_URL,
    ensure_dirs,
)
from ..constants import FILE_FETCH_TIMEOUT, USER_AGENT
from ..models.autolink import AutolinkRequest, AutolinkResult
from ..models.session import Credentials, LoginOutcome
from .auth import attempt_login, is_authenticated
from .browser import BrowserManager
from .materializer import materialize
from .upstream import call_internal_api, open_target_site

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(LOG_LEVEL)


class SessionManager:
    """Orchestrates the shared browser, login and per-request pages."""

    def __init__(
        self,
        browser: Optional[BrowserManager] = None,
        credentials: Optional[Credentials] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        target_site_url: str = TARGET_SITE_URL,
        api_path: str = AUTOLINK_API_PATH,
    ):
        self.browser = browser or BrowserManager()
        self.credentials = credentials
        self.http_client = http_client
        self.target_site_url = target_site_url
        self.api_url = urljoin(target_site_url, api_path)
        self.last_login: Optional[LoginOutcome] = None

    @classmethod
    def from_config(cls) -> SessionManager:
        return cls(credentials=Credentials.from_config(GOOGLE_EMAIL, GOOGLE_PASSWORD))

    async def setup(self):
        """Create the HTTP client used for file downloads."""
        ensure_dirs()
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
                timeout=FILE_FETCH_TIMEOUT,
            )
        if self.credentials is None:
            logger.info("No identity-provider credentials configured, auto-login disabled.")

    async def cleanup(self):
        """Clean up resources."""
        await self.browser.close()
        if self.http_client is not None:
            await self.http_client.aclose()

    async def _close_page(self, page):
        try:
            await page.close()
        except Exception as e:
            logger.warning(f"Error closing page: {e}")

    async def _ensure_login(self, page):
        """Sign in when credentials are configured and the session is missing."""
        if self.credentials is None:
            return
        if await is_authenticated(page):
            return
        self.last_login = await attempt_login(page, self.credentials)
        if not self.last_login.ok:
            logger.warning(
                f"Continuing without login ({self.last_login.state.value}: {self.last_login.reason})"
            )

    async def resolve(self, target_url: str) -> AutolinkResult:
        """Run the autolink API call for ``target_url`` in a fresh page."""
        handle = await self.browser.acquire()
        page = await handle.new_page()
        try:
            await self._ensure_login(page)
            await open_target_site(page, self.target_site_url)
            return await call_internal_api(page, self.api_url, target_url)
        finally:
            await self._close_page(page)

    async def login(self, cookies: Optional[list[dict]] = None) -> dict:
        """Seed ``cookies`` into the shared context, then sign in if needed."""
        handle = await self.browser.acquire()
        page = await handle.new_page()
        try:
            if cookies:
                logger.info(f"Seeding {len(cookies)} cookies")
                await page.context.add_cookies(cookies)
            if await is_authenticated(page):
                return {"ok": True, "message": "already logged in"}
            self.last_login = await attempt_login(page, self.credentials)
            return self.last_login.to_response()
        finally:
            await self._close_page(page)


# ── HTTP Handlers ────────────────────────────────────────────────────────────


async def _read_body(request: web.Request) -> Any:
    """Parse the JSON body; an absent or malformed body reads as ``{}``."""
    if not request.can_read_body:
        return {}
    try:
        return await request.json()
    except ValueError:
        logger.info("Request body is not valid JSON")
        return {}


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "body"
    if field == "url" and first["type"] in ("missing", "string_type"):
        return "Missing url"
    if first["type"] == "value_error":
        return str(first["ctx"]["error"])
    return f"Invalid {field}: {first['msg']}"


async def handle_autolink(request: web.Request) -> web.StreamResponse:
    mgr: SessionManager = request.app["manager"]
    body = await _read_body(request)
    if not isinstance(body, dict):
        body = {}

    try:
        params = AutolinkRequest.model_validate(body)
    except ValidationError as e:
        return web.json_response({"error": _validation_message(e)}, status=400)

    try:
        result = await mgr.resolve(params.url)
        return await materialize(request, result, params.download, mgr.http_client)
    except Exception as e:
        logger.error(f"Autolink failed: {e}", exc_info=True)
        return web.json_response({"error": str(e) or e.__class__.__name__}, status=500)


async def handle_login(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    body = await _read_body(request)
    cookies = body.get("cookies") if isinstance(body, dict) else None

    if cookies is not None and not (
        isinstance(cookies, list) and all(isinstance(c, dict) for c in cookies)
    ):
        return web.json_response({"error": "cookies must be an array of objects"}, status=400)

    try:
        result = await mgr.login(cookies)
        return web.json_response(result)
    except Exception as e:
        logger.error(f"Login failed: {e}", exc_info=True)
        return web.json_response({"error": str(e) or e.__class__.__name__}, status=500)


async def handle_status(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    status = {
        "ok": True,
        "engine": mgr.browser.engine,
        "browser": mgr.browser.status().model_dump(mode="json"),
        "credentials_configured": mgr.credentials is not None,
        "last_login": mgr.last_login.to_response() if mgr.last_login else None,
    }
    return web.json_response(status)


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"ok": True})


# ── App Factory ──────────────────────────────────────────────────────────────


async def on_startup(app: web.Application):
    mgr: SessionManager = app["manager"]
    await mgr.setup()
    logger.info(f"Autolink proxy ready (engine={mgr.browser.engine})")


async def on_cleanup(app: web.Application):
    mgr: SessionManager = app["manager"]
    await mgr.cleanup()
    logger.info("Autolink proxy stopped.")


def create_app(manager: Optional[SessionManager] = None) -> web.Application:
    app = web.Application(client_max_size=10 * 1024 * 1024)
    app["manager"] = manager or SessionManager.from_config()
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    app.router.add_post("/autolink", handle_autolink)
    app.router.add_post("/login", handle_login)
    app.router.add_get("/status", handle_status)
    app.router.add_get("/health", handle_health)

    return app


def main():
    """Run the proxy as a standalone HTTP service."""
    app = create_app()
    logger.info(f"Listening on {HOST}:{PORT}")
    web.run_app(app, host=HOST, port=PORT)


if __name__ == "__main__":
    main()
