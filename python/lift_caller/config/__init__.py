"""Configuration module."""
from .settings import LiftConfig, get_config, reset_config
from .logging import setup_logging

__all__ = ["LiftConfig", "get_config", "reset_config", "setup_logging"]
