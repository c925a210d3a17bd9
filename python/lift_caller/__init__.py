"""
Lift Caller - spoken floor requests to lift destination calls.

Turns a finished speech transcript into an origin/destination floor pair
and places a destination call through the lift WebSocket API:
- Floor number extraction (words and digits)
- Client-credentials access tokens with caching
- WebSocket session with bounded connect time
- Destination call dispatch

Usage:
    python -m lift_caller --transcript "from ground to level 25"

Environment Variables:
    LIFT_CLIENT_ID, LIFT_CLIENT_SECRET - API credentials
    LIFT_BUILDING_ID, LIFT_GROUP_ID - Target building and lift group
    LIFT_API_HOSTNAME - API host (default: dev.kone.com)
"""

__version__ = "1.0.0"

from .config import LiftConfig, get_config
from .core import CallOutcome, LiftCaller
from .parsing import extract_floors

__all__ = [
    "LiftConfig",
    "get_config",
    "CallOutcome",
    "LiftCaller",
    "extract_floors",
]
