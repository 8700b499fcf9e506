"""Client for the BitcoinAverage market data API."""

from .data import BitcoinAverageClient, StreamSession
from .infra import ClientConfig, load_config

__all__ = ["BitcoinAverageClient", "ClientConfig", "StreamSession", "load_config"]
