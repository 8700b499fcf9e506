"""Config loading for the BitcoinAverage client and CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

PUBLIC_KEY_ENV = "BTC_AVERAGE_PUBLIC_KEY"
SECRET_KEY_ENV = "BTC_AVERAGE_SECRET_KEY"
DEFAULT_HOST = "apiv2.bitcoinaverage.com"


@dataclass
class ClientConfig:
    """Explicit client configuration shared by the REST and streaming layers."""

    public_key: str = ""
    secret_key: str = field(default="", repr=False)
    host: str = DEFAULT_HOST
    timeout_seconds: float = 10.0
    data_buffer_size: int = 2
    error_buffer_size: int = 1
    ping_interval_seconds: Optional[float] = 20.0


def config_from_dict(raw: Dict[str, Any]) -> ClientConfig:
    defaults = ClientConfig()
    ping = raw.get("ping_interval_seconds", defaults.ping_interval_seconds)
    return ClientConfig(
        public_key=str(raw.get("public_key") or os.getenv(PUBLIC_KEY_ENV, "")),
        secret_key=str(raw.get("secret_key") or os.getenv(SECRET_KEY_ENV, "")),
        host=raw.get("host", defaults.host),
        timeout_seconds=float(raw.get("timeout_seconds", defaults.timeout_seconds)),
        data_buffer_size=int(raw.get("data_buffer_size", defaults.data_buffer_size)),
        error_buffer_size=int(raw.get("error_buffer_size", defaults.error_buffer_size)),
        ping_interval_seconds=None if ping is None else float(ping),
    )


def load_config(path: str | Path | None = None) -> ClientConfig:
    """Load a :class:`ClientConfig` from YAML.

    A missing file yields the defaults. Empty credentials fall back to the
    ``BTC_AVERAGE_PUBLIC_KEY`` and ``BTC_AVERAGE_SECRET_KEY`` variables.
    """

    raw: Dict[str, Any] = {}
    if path is not None:
        resolved = Path(path).expanduser().resolve()
        if resolved.exists():
            with resolved.open("r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            raw = loaded.get("bitcoinaverage", loaded)
    return config_from_dict(raw)


def env_or_default(key: str, default: str) -> str:
    return os.getenv(key, default)


__all__ = [
    "ClientConfig",
    "config_from_dict",
    "load_config",
    "env_or_default",
    "PUBLIC_KEY_ENV",
    "SECRET_KEY_ENV",
    "DEFAULT_HOST",
]
