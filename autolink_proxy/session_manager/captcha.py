"""Sign-in page, verification prompt and CAPTCHA detection."""

from __future__ import annotations

import logging
import sys
from typing import Optional
from urllib.parse import urlparse

from playwright.async_api import Page

from ..config import LOG_LEVEL
from ..constants import (
    CAPTCHA_SELECTORS,
    SIGN_IN_HOSTS,
    SIGN_IN_PATH_MARKERS,
    VERIFICATION_MARKERS,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(LOG_LEVEL)


def is_sign_in_url(url: str) -> bool:
    """Check if ``url`` is an identity-provider sign-in page."""
    parsed = urlparse(url or "")
    if parsed.hostname in SIGN_IN_HOSTS:
        return True
    path = parsed.path.lower()
    return any(marker in path for marker in SIGN_IN_PATH_MARKERS)


def has_verification_marker(text: str) -> bool:
    """Check page text for prompts asking for an extra verification step."""
    lowered = (text or "").lower()
    return any(marker in lowered for marker in VERIFICATION_MARKERS)


async def detect_captcha_element(page: Page) -> Optional[str]:
    """Detect a CAPTCHA widget on the page.

    Returns the type of CAPTCHA found, or None.
    """
    for selector, captcha_type in CAPTCHA_SELECTORS:
        try:
            element = await page.query_selector(selector)
        except Exception as e:
            logger.debug(f"CAPTCHA probe {selector!r} failed: {e}")
            continue
        if element:
            logger.info(f"Detected CAPTCHA type: {captcha_type}")
            return captcha_type
    return None
