"""
Access token management for the lift WebSocket API.

Exchanges client credentials for a short-lived access token and caches
it until shortly before expiry.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

import aiohttp

from ..metrics import get_metrics

if TYPE_CHECKING:
    from ..config import LiftConfig

logger = logging.getLogger("lift.auth")

PLACEHOLDER_CLIENT_ID = "YOUR_CLIENT_ID"
PLACEHOLDER_CLIENT_SECRET = "YOUR_CLIENT_SECRET"


class ConfigurationError(ValueError):
    """Client credentials are missing or still set to placeholders."""


class TokenExchangeError(RuntimeError):
    """The token endpoint rejected the request or could not be reached."""

    def __init__(self, status: Optional[int] = None, server_message: Optional[str] = None):
        self.status = status
        self.server_message = server_message

        message = "Error fetching the access token"
        if status is not None:
            message += f": {status} {server_message}"
        elif server_message:
            message += f": {server_message}"
        super().__init__(message)


@dataclass(frozen=True)
class AccessToken:
    """Opaque access token with its absolute expiry (epoch seconds)."""
    value: str
    expires_at: float

    def is_valid(self, now: float, margin: float = 60.0) -> bool:
        """True while ``now`` is more than ``margin`` seconds before expiry."""
        return now < self.expires_at - margin

    def __str__(self) -> str:
        return self.value


class TokenCache:
    """
    Holder for the current access token.

    One cache is shared per process by default (see ``get_token_cache``);
    tests and independent callers can pass their own.
    """

    def __init__(self, token: Optional[AccessToken] = None):
        self._token = token

    @property
    def token(self) -> Optional[AccessToken]:
        return self._token

    def store(self, token: AccessToken) -> None:
        self._token = token

    def reset(self) -> None:
        self._token = None


def validate_credentials(client_id: str, client_secret: str) -> None:
    """
    Check that client credentials are usable.

    Raises:
        ConfigurationError: If either value is empty or a placeholder
    """
    if (
        not client_id
        or not client_secret
        or client_id == PLACEHOLDER_CLIENT_ID
        or client_secret == PLACEHOLDER_CLIENT_SECRET
    ):
        raise ConfigurationError("CLIENT_ID and CLIENT_SECRET need to be defined")


class TokenManager:
    """
    Client-credentials token source with caching.

    A cached token is returned without any network activity while it is
    more than ``refresh_margin`` seconds from expiry. Otherwise a new token
    is exchanged; a failed exchange leaves the cache untouched.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_endpoint: str,
        scopes: Optional[List[str]] = None,
        cache: Optional[TokenCache] = None,
        refresh_margin: float = 60.0,
        http_timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize token manager.

        Args:
            client_id: API client id
            client_secret: API client secret
            token_endpoint: OAuth2 token URL
            scopes: Scopes requested with every token
            cache: Token cache (default: process-wide cache)
            refresh_margin: Seconds before expiry at which a token is renewed
            http_timeout: Total timeout for the exchange request
            clock: Time source returning epoch seconds
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_endpoint = token_endpoint
        self.scopes = scopes or []
        self.cache = cache if cache is not None else get_token_cache()
        self.refresh_margin = refresh_margin
        self.http_timeout = http_timeout
        self._clock = clock

    @classmethod
    def from_config(
        cls, config: "LiftConfig", cache: Optional[TokenCache] = None
    ) -> "TokenManager":
        """Create a token manager from lift configuration."""
        return cls(
            client_id=config.client_id,
            client_secret=config.client_secret,
            token_endpoint=config.token_endpoint,
            scopes=config.token_scopes,
            cache=cache,
            refresh_margin=config.token_refresh_margin,
            http_timeout=config.http_timeout,
        )

    async def get_token(self) -> AccessToken:
        """
        Get a valid access token, exchanging credentials if needed.

        Raises:
            ConfigurationError: Credentials missing, no request made
            TokenExchangeError: The exchange failed
        """
        validate_credentials(self.client_id, self.client_secret)

        cached = self.cache.token
        if cached is not None and cached.is_valid(self._clock(), self.refresh_margin):
            return cached

        value, expires_in = await self._exchange()
        token = AccessToken(value=value, expires_at=self._clock() + expires_in)
        self.cache.store(token)
        logger.info(f"Access token fetched, valid for {expires_in}s")
        return token

    def _basic_auth(self) -> str:
        """Authorization header value for the client credentials."""
        return aiohttp.BasicAuth(self.client_id, self.client_secret).encode()

    async def _exchange(self) -> Tuple[str, float]:
        """
        POST the client-credentials request to the token endpoint.

        Returns:
            (access_token, expires_in seconds)
        """
        form = {
            "grant_type": "client_credentials",
            "scope": " ".join(self.scopes),
        }
        started = time.monotonic()
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.http_timeout)
            ) as http:
                async with http.post(
                    self.token_endpoint,
                    headers={"Authorization": self._basic_auth()},
                    data=form,
                ) as resp:
                    body = await _read_json(resp)
                    if resp.status >= 400:
                        raise TokenExchangeError(resp.status, body.get("message"))
        except aiohttp.ClientError as e:
            get_metrics().token_exchange(time.monotonic() - started, success=False)
            logger.error(f"Token endpoint unreachable: {e}")
            raise TokenExchangeError(server_message=str(e)) from e
        except asyncio.TimeoutError as e:
            get_metrics().token_exchange(time.monotonic() - started, success=False)
            logger.error(f"Token endpoint timed out after {self.http_timeout}s")
            raise TokenExchangeError(server_message="request timed out") from e
        except TokenExchangeError as e:
            get_metrics().token_exchange(time.monotonic() - started, success=False)
            logger.error(f"{e}. Check that the client id and secret are set correctly.")
            raise

        get_metrics().token_exchange(time.monotonic() - started)

        try:
            return str(body["access_token"]), float(body["expires_in"])
        except (KeyError, TypeError, ValueError):
            raise TokenExchangeError(resp.status, "malformed token response") from None


async def _read_json(resp: aiohttp.ClientResponse) -> Dict[str, Any]:
    """Decode a JSON object body, tolerating non-JSON error pages."""
    try:
        body = await resp.json(content_type=None)
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


_token_cache: Optional[TokenCache] = None


def get_token_cache() -> TokenCache:
    """Get or create the process-wide token cache."""
    global _token_cache
    if _token_cache is None:
        _token_cache = TokenCache()
    return _token_cache


def reset_token_cache() -> None:
    """Drop the process-wide cached token (useful for testing)."""
    global _token_cache
    if _token_cache is not None:
        _token_cache.reset()
