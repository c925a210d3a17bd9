"""
Lift caller configuration with environment variable support.

Environment Variables:
    LIFT_API_HOSTNAME - API host (default: dev.kone.com)
    LIFT_AUTH_TOKEN_ENDPOINT - OAuth2 token endpoint
    LIFT_WS_ENDPOINT - WebSocket stream endpoint
    LIFT_WS_SUBPROTOCOL - WebSocket subprotocol (default: koneapi)
    LIFT_CLIENT_ID, LIFT_CLIENT_SECRET - API credentials
    LIFT_BUILDING_ID, LIFT_GROUP_ID - Target building and group
    LIFT_CONNECT_TIMEOUT - Seconds allowed for the WebSocket to open (default: 10)
    LIFT_METRICS_PORT - Prometheus exporter port (default: 0, disabled)
    LIFT_DEBUG - Enable debug logging (true/false)
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_API_HOSTNAME = "dev.kone.com"
BUILDING_ID_PREFIX = "building:"


def _api_hostname() -> str:
    return os.getenv("LIFT_API_HOSTNAME", DEFAULT_API_HOSTNAME)


def _default_token_endpoint() -> str:
    """Token endpoint, derived from the API host unless set explicitly."""
    return os.getenv(
        "LIFT_AUTH_TOKEN_ENDPOINT",
        f"https://{_api_hostname()}/api/v2/oauth2/token",
    )


def _default_ws_endpoint() -> str:
    """Stream endpoint, derived from the API host unless set explicitly."""
    return os.getenv("LIFT_WS_ENDPOINT", f"wss://{_api_hostname()}/stream-v2")


@dataclass
class LiftConfig:
    """Lift caller configuration."""

    # Endpoints
    token_endpoint: str = field(default_factory=_default_token_endpoint)
    ws_endpoint: str = field(default_factory=_default_ws_endpoint)
    ws_subprotocol: str = field(
        default_factory=lambda: os.getenv("LIFT_WS_SUBPROTOCOL", "koneapi")
    )

    # Credentials (overridable from the command line)
    client_id: str = field(default_factory=lambda: os.getenv("LIFT_CLIENT_ID", ""))
    client_secret: str = field(
        default_factory=lambda: os.getenv("LIFT_CLIENT_SECRET", "")
    )

    # Building / group
    building_id: str = field(default_factory=lambda: os.getenv("LIFT_BUILDING_ID", ""))
    group_id: str = field(default_factory=lambda: os.getenv("LIFT_GROUP_ID", ""))

    # Timeouts
    connect_timeout: float = field(
        default_factory=lambda: float(os.getenv("LIFT_CONNECT_TIMEOUT", "10.0"))
    )
    http_timeout: float = field(
        default_factory=lambda: float(os.getenv("LIFT_HTTP_TIMEOUT", "10.0"))
    )
    token_refresh_margin: float = field(
        default_factory=lambda: float(os.getenv("LIFT_TOKEN_REFRESH_MARGIN", "60.0"))
    )

    # WebSocket keepalive
    ws_ping_interval: float = field(
        default_factory=lambda: float(os.getenv("LIFT_WS_PING_INTERVAL", "20.0"))
    )
    ws_ping_timeout: float = field(
        default_factory=lambda: float(os.getenv("LIFT_WS_PING_TIMEOUT", "10.0"))
    )

    # Call parameters
    terminal: int = field(default_factory=lambda: int(os.getenv("LIFT_TERMINAL", "1")))
    call_action: int = field(
        default_factory=lambda: int(os.getenv("LIFT_CALL_ACTION", "2"))
    )

    # Metrics
    metrics_port: int = field(
        default_factory=lambda: int(os.getenv("LIFT_METRICS_PORT", "0"))
    )

    # Debug
    debug: bool = field(
        default_factory=lambda: os.getenv("LIFT_DEBUG", "false").lower() == "true"
    )

    def __post_init__(self):
        """Warn about settings the lift API cannot work without."""
        logger = logging.getLogger("lift.config")

        if not self.building_id:
            logger.warning(
                "No building configured. Set LIFT_BUILDING_ID environment variable."
            )
        if not self.group_id:
            logger.debug("LIFT_GROUP_ID not set, using empty group id")

    @property
    def target_building_id(self) -> str:
        """Building id as the lift API expects it (``building:<id>``)."""
        return f"{BUILDING_ID_PREFIX}{self.building_id}"

    @property
    def token_scopes(self) -> List[str]:
        """Scopes requested with every access token."""
        return [
            "application/inventory",
            f"callgiving/group:{self.building_id}:{self.group_id}",
        ]


# Singleton config instance
_config: Optional[LiftConfig] = None


def get_config() -> LiftConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = LiftConfig()
    return _config


def reset_config():
    """Reset the global config (useful for testing)."""
    global _config
    _config = None
