"""Destination call dispatch module."""
from .call import CALL_UNAVAILABLE_MESSAGE, CallDispatcher, CallPayload, generate_request_id

__all__ = ["CALL_UNAVAILABLE_MESSAGE", "CallDispatcher", "CallPayload", "generate_request_id"]
