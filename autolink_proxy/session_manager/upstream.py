"""Same-origin API calls executed inside a browser tab."""

from __future__ import annotations

import logging
import sys

from playwright.async_api import Page

from ..config import LOG_LEVEL, TARGET_SITE_URL
from ..constants import NAVIGATION_TIMEOUT_MS
from ..models.autolink import AutolinkResult

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(LOG_LEVEL)


# Runs in the page, so fetch() attaches the tab's cookies and tokens.
AUTOLINK_SCRIPT = """
async ({ apiUrl, target }) => {
  try {
    const r = await fetch(apiUrl, {
      method: 'POST',
      headers: { 'Content-Type': 'application/json' },
      body: JSON.stringify({ url: target })
    });
    const status = r.status;
    const text = await r.text();
    try {
      return { status, body: JSON.parse(text) };
    } catch (e) {
      return { status, body: text };
    }
  } catch (err) {
    return { status: 0, error: (err && err.message) || String(err) };
  }
}
"""


async def open_target_site(page: Page, url: str = TARGET_SITE_URL) -> bool:
    """Load the target site so the tab picks up its cookies and anti-bot tokens.

    A failed navigation is logged and ignored; the API call is still tried.
    """
    try:
        await page.goto(url, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)
        return True
    except Exception as e:
        logger.warning(f"Initial navigation to {url} failed: {e}")
        return False


async def call_internal_api(page: Page, api_url: str, target_url: str) -> AutolinkResult:
    """POST ``{url: target_url}`` to ``api_url`` from the page's script context.

    A network failure inside the page, or a page that can no longer evaluate
    scripts, yields ``status == 0``.
    """
    logger.info(f"Calling {api_url} in-page for {target_url}")
    try:
        raw = await page.evaluate(AUTOLINK_SCRIPT, {"apiUrl": api_url, "target": target_url})
    except Exception as e:
        logger.error(f"In-page API call could not run: {e}")
        return AutolinkResult.failed(str(e) or e.__class__.__name__)

    if not isinstance(raw, dict):
        return AutolinkResult.failed(f"Unexpected in-page result: {raw!r}")

    result = AutolinkResult(
        status=raw.get("status") or 0,
        body=raw.get("body"),
        error=raw.get("error"),
    )
    logger.info(f"In-page API call returned status {result.status}")
    return result
