"""Pydantic models for autolink requests and in-page API results."""

from __future__ import annotations

from typing import Any, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, StrictStr, field_validator

# Parsed upstream body: whatever JSON.parse produced, or the raw text.
JSONValue = Union[str, int, float, bool, None, list, dict]


def is_absolute_url(value: str) -> bool:
    """True for strings like ``https://host/...``."""
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class AutolinkRequest(BaseModel):
    """Body of POST /autolink."""

    url: StrictStr
    download: bool = False

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Missing url")
        if not is_absolute_url(value):
            raise ValueError("Invalid url")
        return value


class AutolinkResult(BaseModel):
    """Outcome of the in-page API call.

    ``status`` 0 means the call never got a response from the network layer;
    ``error`` then holds the reason.
    """

    status: int = 0
    body: Any = None
    error: Optional[str] = None

    @property
    def reached_network(self) -> bool:
        return self.status != 0

    @classmethod
    def failed(cls, error: str) -> AutolinkResult:
        return cls(status=0, error=error)
