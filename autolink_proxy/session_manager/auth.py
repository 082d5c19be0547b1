"""Identity-provider session probing and best-effort automated login.

The login flow follows the provider's current two-step form (identifier
page, then password page). It breaks whenever the provider changes its
markup; when that happens :func:`attempt_login` reports why instead of
raising, and requests carry on unauthenticated.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from playwright.async_api import Page

from ..config import LOG_LEVEL
from ..constants import (
    ACCOUNT_STATUS_URL,
    CLICK_TIMEOUT_MS,
    ELEMENT_TIMEOUT_MS,
    NAVIGATION_TIMEOUT_MS,
    POST_SUBMIT_TIMEOUT_MS,
    SELECTORS,
    SIGN_IN_URL,
)
from ..models.session import Credentials, LoginOutcome
from .captcha import detect_captcha_element, has_verification_marker, is_sign_in_url

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(LOG_LEVEL)


async def is_authenticated(page: Page, timeout_ms: int = NAVIGATION_TIMEOUT_MS) -> bool:
    """Check whether the page's cookies carry a signed-in provider session.

    The account page redirects to the sign-in flow when there is no session.
    Navigation errors count as "not signed in".
    """
    try:
        await page.goto(ACCOUNT_STATUS_URL, wait_until="networkidle", timeout=timeout_ms)
    except Exception as e:
        logger.warning(f"Account status check failed: {e}")
        return False

    current_url = page.url
    authenticated = not is_sign_in_url(current_url)
    logger.info(f"Account status check landed on {current_url} (authenticated={authenticated})")
    return authenticated


async def _submit(page: Page, selector: str):
    """Click the form's primary button, or press Enter if it isn't there."""
    try:
        await page.click(selector, timeout=CLICK_TIMEOUT_MS)
    except Exception as e:
        logger.info(f"Submit button {selector!r} unavailable ({e}), pressing Enter instead")
        await page.keyboard.press("Enter")


async def _visible_text(page: Page) -> str:
    """Visible body text of the current page, for verification detection."""
    try:
        text = await page.inner_text("body", timeout=CLICK_TIMEOUT_MS)
    except Exception as e:
        logger.warning(f"Could not read page text after login: {e}")
        text = ""
    return text


async def attempt_login(page: Page, credentials: Optional[Credentials]) -> LoginOutcome:
    """Drive the provider's sign-in form and classify the result.

    Never raises: automation failures come back as an error outcome.
    """
    if credentials is None:
        return LoginOutcome.error("missing credentials")

    try:
        logger.info("Starting automated login...")
        await page.goto(SIGN_IN_URL, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)

        await page.wait_for_selector(SELECTORS["identifier"], timeout=ELEMENT_TIMEOUT_MS)
        await page.fill(SELECTORS["identifier"], credentials.username)
        await _submit(page, SELECTORS["identifier_next"])

        await page.wait_for_selector(
            SELECTORS["password"], state="visible", timeout=ELEMENT_TIMEOUT_MS
        )
        await page.fill(SELECTORS["password"], credentials.password.get_secret_value())
        await _submit(page, SELECTORS["password_next"])

        try:
            await page.wait_for_load_state("networkidle", timeout=POST_SUBMIT_TIMEOUT_MS)
        except Exception as e:
            logger.info(f"No settled navigation after password submit: {e}")

        # Read the result page before the status probe navigates away from it.
        result_url = page.url
        text = await _visible_text(page)
        captcha_type = await detect_captcha_element(page)

        if await is_authenticated(page):
            logger.info("Login confirmed.")
            return LoginOutcome.success()

        if captcha_type:
            logger.warning(f"Login blocked by a {captcha_type} CAPTCHA on {result_url}")
            return LoginOutcome.needs_challenge()

        if has_verification_marker(text):
            logger.warning(f"Login needs additional verification on {result_url}")
            return LoginOutcome.needs_challenge()

        logger.warning(f"Login could not be confirmed, stopped on {result_url}")
        return LoginOutcome.unconfirmed()

    except Exception as e:
        logger.warning(f"Automated login failed: {e}")
        return LoginOutcome.error(str(e) or e.__class__.__name__)
