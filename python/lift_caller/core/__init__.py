"""Core lift caller components."""
from .caller import CallOutcome, LiftCaller, describe_response, response_sentence

__all__ = ["CallOutcome", "LiftCaller", "describe_response", "response_sentence"]
