from .autolink import AutolinkRequest, AutolinkResult
from .session import BrowserState, BrowserStatus, Credentials, LoginOutcome, LoginState

__all__ = [
    "AutolinkRequest",
    "AutolinkResult",
    "BrowserState",
    "BrowserStatus",
    "Credentials",
    "LoginOutcome",
    "LoginState",
]
