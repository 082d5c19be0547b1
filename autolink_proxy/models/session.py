"""Pydantic models for browser and login state."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, SecretStr


class BrowserState(str, Enum):
    """Lifecycle of the shared browser handle."""

    EMPTY = "empty"
    LAUNCHING = "launching"
    READY = "ready"
    FAILED = "failed"


class BrowserStatus(BaseModel):
    """Snapshot of the shared browser, reported by GET /status."""

    state: BrowserState = BrowserState.EMPTY
    alive: bool = False
    last_error: Optional[str] = None


class Credentials(BaseModel):
    """Identity-provider login pair. Only ever sourced from configuration."""

    username: str
    password: SecretStr

    @classmethod
    def from_config(cls, username: Optional[str], password: Optional[str]) -> Optional[Credentials]:
        """Return credentials when both values are set, otherwise None."""
        if not username or not password:
            return None
        return cls(username=username, password=password)


class LoginState(str, Enum):
    SUCCESS = "success"
    NEEDS_CHALLENGE = "needs_challenge"
    UNCONFIRMED = "unconfirmed"
    ERROR = "error"


class LoginOutcome(BaseModel):
    """Result of a login attempt.

    ``state`` says which way the attempt went; ``reason`` carries the detail
    for every state except success.
    """

    state: LoginState
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is LoginState.SUCCESS

    @classmethod
    def success(cls) -> LoginOutcome:
        return cls(state=LoginState.SUCCESS)

    @classmethod
    def needs_challenge(cls, reason: str = "additional verification required") -> LoginOutcome:
        return cls(state=LoginState.NEEDS_CHALLENGE, reason=reason)

    @classmethod
    def unconfirmed(cls, reason: str = "unconfirmed") -> LoginOutcome:
        return cls(state=LoginState.UNCONFIRMED, reason=reason)

    @classmethod
    def error(cls, detail: str) -> LoginOutcome:
        return cls(state=LoginState.ERROR, reason=detail)

    def to_response(self) -> dict:
        body: dict = {"ok": self.ok, "state": self.state.value}
        if self.reason is not None:
            body["reason"] = self.reason
        return body
