"""
WebSocket session to the lift dispatch service.

A session goes through three phases:

    CONNECTING -> OPEN -> CLOSED

Failures while CONNECTING are setup failures: the open attempt is
rejected and the caller is told the connection could not be made.
Failures once OPEN are reported as a lost connection. CLOSED is final;
reconnecting means opening a new session with a fresh token.

Each attempt settles exactly once, whichever of open, error, close or
the establishment timeout happens first.
"""

import asyncio
import json
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional, Union, TYPE_CHECKING

import websockets
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from ..metrics import get_metrics

if TYPE_CHECKING:
    from ..config import LiftConfig
    from .auth import AccessToken

logger = logging.getLogger("lift.session")

CONNECT_FAILED_MESSAGE = "Failed to connect to the lift server. Please refresh page."
CONNECTION_CLOSED_MESSAGE = "Connection to the lift server closed. Please refresh page."
CONNECTION_LOST_MESSAGE = "Connection to the lift server lost. Please refresh page."

MessageHandler = Callable[[Any], None]
ErrorHandler = Callable[[str], None]


class SessionConnectError(ConnectionError):
    """The session failed before it was established."""

    def __init__(self, message: str, code: Optional[int] = None, reason: str = ""):
        super().__init__(message)
        self.code = code
        self.reason = reason


class SessionTimeoutError(SessionConnectError, TimeoutError):
    """The session was not established within the connect timeout."""


class SessionPhase(Enum):
    """Lifecycle phase of a session."""
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class LiftSession:
    """
    Handle for one WebSocket connection attempt and, once open, the live
    connection.

    Transport events are fed in through the ``handle_*`` methods; the
    current phase decides what each event means.
    """

    def __init__(
        self,
        on_message: MessageHandler,
        on_error: ErrorHandler,
        connect_timeout: float = 10.0,
    ):
        self.on_message = on_message
        self.on_error = on_error
        self.connect_timeout = connect_timeout

        self.phase = SessionPhase.CONNECTING
        self._settled = False
        self._opened: asyncio.Future = asyncio.get_running_loop().create_future()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._ws: Any = None
        self._task: Optional[asyncio.Task] = None
        self._started_at = time.monotonic()

    @property
    def is_open(self) -> bool:
        """True while the session is established and the socket is open."""
        return (
            self.phase is SessionPhase.OPEN
            and self._ws is not None
            and self._ws.state == State.OPEN
        )

    @property
    def settled(self) -> bool:
        return self._settled

    def arm(self) -> None:
        """Start the establishment timer."""
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.connect_timeout, self.handle_timeout)

    def attach(self, task: asyncio.Task) -> None:
        """Attach the transport task that drives this session."""
        self._task = task

    async def wait_open(self) -> "LiftSession":
        """Wait until the attempt settles; returns self once open."""
        # Cancelling the waiter must not cancel the attempt's outcome
        await asyncio.shield(self._opened)
        return self

    def _settle(self) -> bool:
        """Claim the one-time settlement of this attempt."""
        if self._settled or self._opened.done():
            self._settled = True
            return False
        self._settled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return True

    # Transport events

    def handle_open(self, ws: Any) -> bool:
        """
        Connection established.

        Returns:
            False if the attempt had already settled (the socket should be closed)
        """
        if not self._settle():
            return False
        self._ws = ws
        self.phase = SessionPhase.OPEN
        latency = time.monotonic() - self._started_at
        get_metrics().session_opened(latency)
        logger.info(f"WebSocket connection opened ({latency:.2f}s)")
        self._opened.set_result(self)
        return True

    def handle_error(self, exc: BaseException) -> None:
        if self.phase is SessionPhase.CONNECTING:
            self._fail_connect(
                SessionConnectError(f"WebSocket error: {exc}"), cause=exc
            )
        elif self.phase is SessionPhase.OPEN:
            logger.error(f"WebSocket error after connect: {exc}")
            self._lose(CONNECTION_LOST_MESSAGE, "lost")

    def handle_close(self, code: Optional[int], reason: str = "") -> None:
        if self.phase is SessionPhase.CONNECTING:
            logger.error(f"WebSocket closed before open: {code} {reason}")
            self._fail_connect(
                SessionConnectError(f"WebSocket closed: {code} {reason}".rstrip(), code, reason)
            )
        elif self.phase is SessionPhase.OPEN:
            logger.error(f"WebSocket closed after connect: {code} {reason}")
            self._lose(CONNECTION_CLOSED_MESSAGE, "closed")

    def handle_timeout(self) -> None:
        if not self._settle():
            return
        self.phase = SessionPhase.CLOSED
        self._force_close()
        get_metrics().session_event("timeout")
        logger.error(f"WebSocket connection timed out after {self.connect_timeout}s")
        self.on_error(CONNECT_FAILED_MESSAGE)
        self._opened.set_exception(
            SessionTimeoutError("WebSocket connection timed out")
        )

    def handle_frame(self, raw: Union[str, bytes]) -> None:
        """Decode an inbound frame and pass it on; malformed frames are dropped."""
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            response = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError):
            get_metrics().frame_received(parsed=False)
            logger.warning(f"Failed to parse WebSocket message: {raw!r:.200}")
            return
        get_metrics().frame_received(parsed=True)
        logger.debug(f"Message received from server: {response}")
        try:
            self.on_message(response)
        except Exception:
            logger.exception("Message handler failed")

    def _fail_connect(self, error: SessionConnectError, cause: Optional[BaseException] = None) -> None:
        if not self._settle():
            return
        self.phase = SessionPhase.CLOSED
        get_metrics().session_event("connect_failed")
        if cause is not None:
            error.__cause__ = cause
        self.on_error(CONNECT_FAILED_MESSAGE)
        self._opened.set_exception(error)

    def _lose(self, message: str, event: str) -> None:
        self.phase = SessionPhase.CLOSED
        get_metrics().session_event(event)
        self.on_error(message)

    def _force_close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        elif self._ws is not None:
            asyncio.ensure_future(self._ws.close())

    # Caller API

    async def send(self, data: str) -> None:
        """
        Send a text frame.

        Raises:
            ConnectionError: If the session is not open
        """
        if not self.is_open:
            raise ConnectionError("WebSocket session is not open")
        await self._ws.send(data)

    async def close(self) -> None:
        """Close the session on purpose; this is not reported as a loss."""
        was_open = self.phase is SessionPhase.OPEN
        self.phase = SessionPhase.CLOSED
        if not self._settled:
            self.abort()
        if was_open and self._ws is not None:
            await self._ws.close()
        if self._task is not None and not self._task.done():
            _, pending = await asyncio.wait({self._task}, timeout=1.0)
            for task in pending:
                task.cancel()

    def abort(self) -> None:
        """Give up the attempt without reporting an error; any socket is closed."""
        self.phase = SessionPhase.CLOSED
        if self._settle():
            self._opened.set_exception(SessionConnectError("WebSocket connection cancelled"))
            # Nobody may be awaiting an abandoned attempt
            self._opened.exception()
        self._force_close()


class SessionManager:
    """
    Opens sessions to the lift WebSocket endpoint.

    The manager keeps no reference to the sessions it opens; the caller
    owns the returned handle.
    """

    def __init__(
        self,
        endpoint: str,
        subprotocol: str = "koneapi",
        connect_timeout: float = 10.0,
        ping_interval: Optional[float] = 20.0,
        ping_timeout: Optional[float] = 10.0,
    ):
        """
        Initialize session manager.

        Args:
            endpoint: WebSocket URL (token is appended as a query parameter)
            subprotocol: Required application subprotocol
            connect_timeout: Seconds allowed for the connection to open
            ping_interval: WebSocket ping interval
            ping_timeout: WebSocket ping timeout
        """
        self.endpoint = endpoint
        self.subprotocol = subprotocol
        self.connect_timeout = connect_timeout
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout

    @classmethod
    def from_config(cls, config: "LiftConfig") -> "SessionManager":
        return cls(
            endpoint=config.ws_endpoint,
            subprotocol=config.ws_subprotocol,
            connect_timeout=config.connect_timeout,
            ping_interval=config.ws_ping_interval,
            ping_timeout=config.ws_ping_timeout,
        )

    def url_for(self, token: Union["AccessToken", str]) -> str:
        return f"{self.endpoint}?accessToken={token}"

    async def open(
        self,
        token: Union["AccessToken", str],
        on_message: MessageHandler,
        on_error: ErrorHandler,
    ) -> LiftSession:
        """
        Open a session and wait until it is established.

        Args:
            token: Access token for the query credential
            on_message: Called with every decoded inbound frame
            on_error: Called with a user-facing message on failure

        Returns:
            The open session

        Raises:
            SessionTimeoutError: Not established within the connect timeout
            SessionConnectError: Error or close before establishment
        """
        session = LiftSession(on_message, on_error, self.connect_timeout)
        short_url = self.endpoint.split('//')[1][:40] if '//' in self.endpoint else self.endpoint
        logger.info(f"Connecting to: {short_url}")

        session.arm()
        session.attach(asyncio.create_task(self._run(session, self.url_for(token))))
        try:
            return await session.wait_open()
        except asyncio.CancelledError:
            logger.info("Session open cancelled")
            session.abort()
            raise

    async def _run(self, session: LiftSession, url: str) -> None:
        """Connect, then read frames until the connection ends."""
        try:
            ws = await websockets.connect(
                url,
                subprotocols=[self.subprotocol],
                open_timeout=None,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            session.handle_error(e)
            return

        if not session.handle_open(ws):
            await ws.close()
            return

        try:
            async for raw in ws:
                session.handle_frame(raw)
        except ConnectionClosed:
            session.handle_close(ws.close_code, ws.close_reason or "")
        except asyncio.CancelledError:
            await ws.close()
            raise
        except Exception as e:
            session.handle_error(e)
            await ws.close()
        else:
            session.handle_close(ws.close_code, ws.close_reason or "")
