"""WebSocket session and authentication module."""
from .auth import (
    AccessToken,
    ConfigurationError,
    TokenCache,
    TokenExchangeError,
    TokenManager,
    get_token_cache,
    reset_token_cache,
)
from .session import (
    CONNECT_FAILED_MESSAGE,
    CONNECTION_CLOSED_MESSAGE,
    CONNECTION_LOST_MESSAGE,
    LiftSession,
    SessionConnectError,
    SessionManager,
    SessionPhase,
    SessionTimeoutError,
)

__all__ = [
    "AccessToken",
    "ConfigurationError",
    "TokenCache",
    "TokenExchangeError",
    "TokenManager",
    "get_token_cache",
    "reset_token_cache",
    "CONNECT_FAILED_MESSAGE",
    "CONNECTION_CLOSED_MESSAGE",
    "CONNECTION_LOST_MESSAGE",
    "LiftSession",
    "SessionConnectError",
    "SessionManager",
    "SessionPhase",
    "SessionTimeoutError",
]
