"""
Lift Caller Orchestrator.

Coordinates the pieces of one voice lift call:
- access token + WebSocket session (once per login)
- floor extraction from a finished transcript
- destination call dispatch
- interpretation of server responses for the user
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from ..config import LiftConfig, get_config
from ..dispatch import CallDispatcher, CallPayload
from ..parsing import extract_floors, floor_word
from ..websocket import LiftSession, SessionManager, TokenCache, TokenManager

logger = logging.getLogger("lift.caller")

NO_FLOORS_SENTENCE = "Please try again. I didn't detect any numbers in that sentence."
SEND_FAILED_SENTENCE = "Please try again. Sorry, there was an error calling the elevator."


def response_sentence(floors: List[int]) -> str:
    """Sentence read back to the user for the floors that were understood."""
    if not floors:
        return NO_FLOORS_SENTENCE
    if len(floors) == 1:
        return (
            "Please try again. I only recognised one floor - "
            f"floor {floor_word(floors[0])}."
        )
    return (
        "SUCCESS. Elevator has been called to take you from level "
        f"{floor_word(floors[0])} to level {floor_word(floors[1])}."
    )


def describe_response(frame: Any) -> Optional[str]:
    """
    Turn a server frame into a user-facing error message.

    Returns:
        Message for frames that report a failure, None otherwise
    """
    if not isinstance(frame, dict):
        return None

    data = frame.get("data")
    if isinstance(data, dict):
        if data.get("error"):
            return f"Lift server responded with error {data['error']}"
        if data.get("success") is False:
            return "Lift server could not place the call."

    status_code = frame.get("statusCode")
    if isinstance(status_code, int) and status_code >= 400:
        detail = frame.get("status") or (data.get("message") if isinstance(data, dict) else None)
        return f"Lift server rejected the call ({status_code}{f' {detail}' if detail else ''})"

    return None


@dataclass
class CallOutcome:
    """Result of handling one transcript."""
    transcript: str
    floors: List[int]
    sentence: str
    payload: Optional[CallPayload] = None

    @property
    def sent(self) -> bool:
        return self.payload is not None


class LiftCaller:
    """Main lift caller orchestrator."""

    def __init__(
        self,
        config: Optional[LiftConfig] = None,
        token_manager: Optional[TokenManager] = None,
        session_manager: Optional[SessionManager] = None,
        dispatcher: Optional[CallDispatcher] = None,
        token_cache: Optional[TokenCache] = None,
        on_user_message: Optional[Callable[[str], None]] = None,
    ):
        self.config = config or get_config()
        self.token_manager = token_manager or TokenManager.from_config(self.config, cache=token_cache)
        self.session_manager = session_manager or SessionManager.from_config(self.config)
        self.dispatcher = dispatcher or CallDispatcher.from_config(self.config)
        self.on_user_message = on_user_message

        self._session: Optional[LiftSession] = None
        self._errors: List[str] = []

    @property
    def session(self) -> Optional[LiftSession]:
        return self._session

    @property
    def connected(self) -> bool:
        return self._session is not None and self._session.is_open

    @property
    def last_error(self) -> Optional[str]:
        return self._errors[-1] if self._errors else None

    def _report(self, message: str) -> None:
        self._errors.append(message)
        logger.warning(message)
        if self.on_user_message:
            self.on_user_message(message)

    def _on_message(self, frame: Any) -> None:
        logger.info(f"Message received from server: {frame}")
        message = describe_response(frame)
        if message:
            self._report(message)

    async def connect(self) -> LiftSession:
        """
        Log in: fetch a token and open a new session, replacing any
        current one.
        """
        await self.disconnect()
        token = await self.token_manager.get_token()
        self._session = await self.session_manager.open(token, self._on_message, self._report)
        return self._session

    async def disconnect(self) -> None:
        """Close the current session, if any."""
        session, self._session = self._session, None
        if session is not None:
            await session.close()

    async def handle_transcript(self, transcript: str) -> CallOutcome:
        """
        Extract floors from a transcript and call the lift when both
        origin and destination were understood.
        """
        floors = extract_floors(transcript)
        logger.info(f"Transcript {transcript!r} -> floors {floors}")

        if len(floors) < 2:
            return CallOutcome(transcript, floors, response_sentence(floors))

        try:
            payload = await self.dispatcher.place_call(self._session, floors, self._report)
        except Exception as e:
            logger.error(f"Sending lift call failed: {e}")
            return CallOutcome(transcript, floors, SEND_FAILED_SENTENCE)

        if payload is None:
            return CallOutcome(transcript, floors, self.last_error or SEND_FAILED_SENTENCE)
        return CallOutcome(transcript, floors, response_sentence(floors), payload)
