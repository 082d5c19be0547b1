"""Shared browser lifecycle: launch once, hand out pages, relaunch after failure."""

from __future__ import annotations

import asyncio
import logging
import sys
from functools import partial
from pathlib import Path
from typing import Awaitable, Callable, Optional

from camoufox.async_api import AsyncCamoufox
from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from ..config import (
    BROWSER_ENGINE,
    BROWSER_HEADLESS,
    CHROME_PATH,
    LOG_LEVEL,
    USER_DATA_DIR,
)
from ..constants import (
    CHROMIUM_ARGS,
    LAUNCH_TIMEOUT_MS,
    SUPPORTED_ENGINES,
    USER_AGENT,
    VIEWPORT,
)
from ..models.session import BrowserState, BrowserStatus

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(LOG_LEVEL)


class BrowserHandle:
    """A running browser plus the shared context every page is opened in.

    Pages share the context's cookie jar, so a login performed in one request
    is visible to the next. With a persistent profile the context *is* the
    browser and there is no separate ``Browser`` object.
    """

    def __init__(
        self,
        context: BrowserContext,
        *,
        browser: Optional[Browser] = None,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._context = context
        self._browser = browser
        self._on_close = on_close
        self._alive = True
        context.on("close", self._mark_closed)

    @property
    def is_alive(self) -> bool:
        return self._alive

    @property
    def context(self) -> BrowserContext:
        return self._context

    def _mark_closed(self, *_args) -> None:
        if self._alive:
            logger.warning("Browser context closed, handle marked dead.")
        self._alive = False

    async def new_page(self) -> Page:
        return await self._context.new_page()

    async def close(self):
        """Close the context, the browser and the driver, in that order."""
        self._alive = False
        try:
            await self._context.close()
            if self._browser is not None:
                await self._browser.close()
        except Exception as e:
            logger.warning(f"Error closing browser: {e}")
        finally:
            if self._on_close is not None:
                try:
                    await self._on_close()
                except Exception as e:
                    logger.warning(f"Error stopping browser driver: {e}")


async def launch_chromium(
    *,
    headless: bool = True,
    executable_path: Optional[str] = None,
    user_data_dir: Optional[Path] = None,
) -> BrowserHandle:
    """Start Chromium through Playwright with the fixed container-friendly flags."""
    playwright = await async_playwright().start()
    launch_kwargs = {
        "headless": headless,
        "args": CHROMIUM_ARGS,
        "timeout": LAUNCH_TIMEOUT_MS,
    }
    if executable_path:
        launch_kwargs["executable_path"] = executable_path

    try:
        if user_data_dir is not None:
            context = await playwright.chromium.launch_persistent_context(
                str(user_data_dir),
                user_agent=USER_AGENT,
                viewport=VIEWPORT,
                **launch_kwargs,
            )
            browser = None
        else:
            browser = await playwright.chromium.launch(**launch_kwargs)
            context = await browser.new_context(user_agent=USER_AGENT, viewport=VIEWPORT)
    except Exception:
        await playwright.stop()
        raise

    return BrowserHandle(context, browser=browser, on_close=playwright.stop)


async def launch_camoufox(
    *,
    headless: bool = True,
    executable_path: Optional[str] = None,
    user_data_dir: Optional[Path] = None,
) -> BrowserHandle:
    """Start the Camoufox anti-detection build of Firefox."""
    options = {
        "headless": headless,
        "humanize": True,
        "i_know_what_im_doing": True,
        "timeout": LAUNCH_TIMEOUT_MS,
    }
    if executable_path:
        options["executable_path"] = executable_path
    if user_data_dir is not None:
        options["persistent_context"] = True
        options["user_data_dir"] = str(user_data_dir)

    camoufox = AsyncCamoufox(**options)
    target = await camoufox.__aenter__()

    async def _stop():
        await camoufox.__aexit__(None, None, None)

    try:
        if user_data_dir is not None:
            context, browser = target, None
        else:
            # Camoufox picks its own user agent to match the fingerprint.
            browser = target
            context = await browser.new_context(viewport=VIEWPORT)
    except Exception:
        await _stop()
        raise

    return BrowserHandle(context, browser=browser, on_close=_stop)


LAUNCHERS = {
    "chromium": launch_chromium,
    "camoufox": launch_camoufox,
}

Launcher = Callable[[], Awaitable[BrowserHandle]]


class BrowserManager:
    """Lazily creates the single shared browser and hands it to callers.

    Concurrent ``acquire()`` calls made while a launch is running all await
    the same launch task, so only one browser process is ever started and
    every waiter sees the same handle or the same exception. A failed launch
    leaves the manager empty again; the next ``acquire()`` starts over.
    """

    def __init__(
        self,
        launcher: Optional[Launcher] = None,
        *,
        engine: str = BROWSER_ENGINE,
        headless: bool = BROWSER_HEADLESS,
        executable_path: Optional[str] = CHROME_PATH,
        user_data_dir: Optional[Path] = USER_DATA_DIR,
    ):
        if launcher is None:
            if engine not in SUPPORTED_ENGINES:
                raise ValueError(
                    f"Unsupported browser engine {engine!r}; expected one of {SUPPORTED_ENGINES}."
                )
            launcher = partial(
                LAUNCHERS[engine],
                headless=headless,
                executable_path=executable_path,
                user_data_dir=user_data_dir,
            )
        self.engine = engine
        self._launcher = launcher
        self._handle: Optional[BrowserHandle] = None
        self._launch_task: Optional[asyncio.Task] = None
        self._state = BrowserState.EMPTY
        self._last_error: Optional[str] = None

    @property
    def state(self) -> BrowserState:
        return self._state

    def status(self) -> BrowserStatus:
        return BrowserStatus(
            state=self._state,
            alive=self._handle is not None and self._handle.is_alive,
            last_error=self._last_error,
        )

    async def acquire(self) -> BrowserHandle:
        """Return the live browser, launching it if necessary."""
        if self._handle is not None:
            if self._handle.is_alive:
                return self._handle
            logger.warning("Browser is no longer alive, a new one will be launched.")
            dead, self._handle = self._handle, None
            self._state = BrowserState.EMPTY
            await dead.close()

        if self._launch_task is None:
            self._launch_task = asyncio.ensure_future(self._launch())
        else:
            logger.info("Browser launch already in progress, waiting for it...")
        # shield: one caller giving up must not cancel the launch for the others
        return await asyncio.shield(self._launch_task)

    async def _launch(self) -> BrowserHandle:
        self._state = BrowserState.LAUNCHING
        logger.info(f"Launching {self.engine} browser...")
        try:
            handle = await self._launcher()
        except Exception as e:
            self._state = BrowserState.FAILED
            self._last_error = str(e) or e.__class__.__name__
            logger.error(f"Browser launch failed: {self._last_error}")
            raise
        finally:
            self._launch_task = None

        self._handle = handle
        self._state = BrowserState.READY
        self._last_error = None
        logger.info("Browser ready.")
        return handle

    async def close(self):
        """Shut the browser down. Only called on application cleanup."""
        if self._launch_task is not None:
            try:
                await self._launch_task
            except Exception as e:
                logger.warning(f"Pending launch failed during shutdown: {e}")
        if self._handle is not None:
            logger.info("Closing browser...")
            await self._handle.close()
            self._handle = None
        self._state = BrowserState.EMPTY
