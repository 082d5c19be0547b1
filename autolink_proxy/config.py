"""Application configuration loaded from environment variables."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Browser
BROWSER_ENGINE = os.getenv("BROWSER_ENGINE", "chromium").lower()  # "chromium" or "camoufox"
BROWSER_HEADLESS = os.getenv("HEADFUL", "false").lower() != "true"
CHROME_PATH = _optional("CHROME_PATH")
USER_DATA_DIR = Path(_optional("USER_DATA_DIR")) if _optional("USER_DATA_DIR") else None

# Target site
TARGET_SITE_URL = os.getenv("TARGET_SITE_URL", "https://j2download.com/vi")
AUTOLINK_API_PATH = os.getenv("AUTOLINK_API_PATH", "/api/autolink")

# Identity provider (auto-login is disabled unless both are set)
GOOGLE_EMAIL = _optional("GOOGLE_EMAIL")
GOOGLE_PASSWORD = _optional("GOOGLE_PASSWORD")


def ensure_dirs():
    """Create the persistent profile directory if one is configured."""
    if USER_DATA_DIR is not None:
        USER_DATA_DIR.mkdir(parents=True, exist_ok=True)
