"""
Destination call dispatch.

Builds a ``lift-call-api-v2`` action frame for an origin/destination
floor pair and sends it over an open session.
"""

import json
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Sequence, TYPE_CHECKING

from ..metrics import get_metrics
from ..parsing import floor_code

if TYPE_CHECKING:
    from ..config import LiftConfig
    from ..websocket import LiftSession

logger = logging.getLogger("lift.dispatch")

CALL_UNAVAILABLE_MESSAGE = (
    "Failed to call the lift because the connection to the lift server was "
    "interrupted. Please try again or refresh page."
)

MESSAGE_TYPE = "lift-call-api-v2"
CALL_TYPE = "action"


def generate_request_id() -> int:
    """Request id, unique enough to tell concurrent calls apart."""
    return random.randrange(1_000_000_000)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class CallPayload:
    """Destination call frame."""
    building_id: str
    group_id: str
    area: int
    destination: int
    terminal: int = 1
    action: int = 2
    request_id: int = field(default_factory=generate_request_id)
    time: str = field(default_factory=_utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire layout expected by the lift API."""
        return {
            "type": MESSAGE_TYPE,
            "buildingId": self.building_id,
            "callType": CALL_TYPE,
            "groupId": self.group_id,
            "payload": {
                "request_id": self.request_id,
                "area": self.area,
                "time": self.time,
                "terminal": self.terminal,
                "call": {
                    "action": self.action,
                    "destination": self.destination,
                },
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class CallDispatcher:
    """Places destination calls over an open lift session."""

    def __init__(
        self,
        building_id: str,
        group_id: str,
        terminal: int = 1,
        action: int = 2,
        floor_to_code: Callable[[int], int] = floor_code,
    ):
        """
        Initialize call dispatcher.

        Args:
            building_id: Target building id (``building:<id>``)
            group_id: Lift group id
            terminal: Terminal code sent with every call
            action: Call action code
            floor_to_code: Maps a floor number to its API area code
        """
        self.building_id = building_id
        self.group_id = group_id
        self.terminal = terminal
        self.action = action
        self.floor_to_code = floor_to_code

    @classmethod
    def from_config(
        cls, config: "LiftConfig", floor_to_code: Callable[[int], int] = floor_code
    ) -> "CallDispatcher":
        return cls(
            building_id=config.target_building_id,
            group_id=config.group_id,
            terminal=config.terminal,
            action=config.call_action,
            floor_to_code=floor_to_code,
        )

    def build_payload(self, floors: Sequence[int]) -> CallPayload:
        """
        Build the call frame for ``[origin, destination]``.

        Raises:
            ValueError: If fewer than two floors are given
        """
        if len(floors) < 2:
            raise ValueError(f"Need origin and destination floors, got {list(floors)}")
        return CallPayload(
            building_id=self.building_id,
            group_id=self.group_id,
            area=self.floor_to_code(floors[0]),
            destination=self.floor_to_code(floors[1]),
            terminal=self.terminal,
            action=self.action,
        )

    async def place_call(
        self,
        session: Optional["LiftSession"],
        floors: Sequence[int],
        on_error: Callable[[str], None],
    ) -> Optional[CallPayload]:
        """
        Send a destination call.

        If the session is missing or not open, ``on_error`` is called and
        nothing is sent. Errors raised while sending propagate.

        Returns:
            The payload sent, or None if the call was not sent
        """
        if session is None or not session.is_open:
            logger.warning("WebSocket not connected, call not sent")
            get_metrics().call("unavailable")
            on_error(CALL_UNAVAILABLE_MESSAGE)
            return None

        payload = self.build_payload(floors)
        try:
            await session.send(payload.to_json())
        except Exception:
            get_metrics().call("failed")
            raise

        get_metrics().call("sent")
        logger.info(
            f"Call {payload.request_id} sent: floor {floors[0]} -> {floors[1]} "
            f"(area {payload.area} -> {payload.destination})"
        )
        return payload
