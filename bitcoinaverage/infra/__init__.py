"""Infrastructure utilities for logging and configuration."""

from .config import ClientConfig, load_config
from .logging import configure_logging

__all__ = [
    "ClientConfig",
    "configure_logging",
    "load_config",
]
