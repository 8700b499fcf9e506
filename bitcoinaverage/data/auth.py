"""Request signing for the BitcoinAverage API."""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Credentials:
    """API key pair owned by a single client instance."""

    public_key: str
    secret_key: str = field(repr=False)


def sign(secret_key: str, public_key: str, now: Optional[int] = None) -> str:
    """Return a ``{timestamp}.{public_key}.{hex digest}`` signature token.

    The digest is HMAC-SHA256 over ``{timestamp}.{public_key}`` keyed by the
    secret. ``now`` is a unix timestamp in seconds and defaults to the
    current time.
    """

    timestamp = int(time.time()) if now is None else int(now)
    payload = f"{timestamp}.{public_key}"
    digest = hmac.new(secret_key.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"{payload}.{digest}"


def verify(token: str, secret_key: str) -> bool:
    """Recompute the digest of a token and compare it in constant time."""

    payload, _, digest = token.rpartition(".")
    if not payload or not digest:
        return False
    expected = hmac.new(secret_key.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, digest)


__all__ = ["Credentials", "sign", "verify"]
