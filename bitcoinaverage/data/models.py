"""Typed records for BitcoinAverage tickers, exchanges and history.

Numeric JSON is decoded with ``parse_float=Decimal`` so that
:class:`FixedNumber` fields keep the exact text the API sent. Ordinary price
fields are normalized to ``float``; a field that is missing or null becomes
``None`` while a field of the wrong JSON type raises :class:`DecodeError`.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import DecodeError


def loads(raw: Union[str, bytes]) -> Any:
    """Decode JSON keeping non-integer numbers as :class:`~decimal.Decimal`."""

    try:
        return json.loads(raw, parse_float=Decimal)
    except (TypeError, ValueError, RecursionError) as exc:
        raise DecodeError(f"decoding JSON: {exc}") from exc


@dataclass(frozen=True)
class FixedNumber:
    """A fixed-precision number held as its raw JSON text.

    :meth:`value` is lenient and returns ``0`` for null or non-numeric input,
    :meth:`decimal` is strict and raises :class:`ValueError` instead.
    """

    raw: Optional[str] = None

    @classmethod
    def from_json(cls, value: Any) -> "FixedNumber":
        if isinstance(value, (Mapping, list)):
            raise DecodeError(f"expected a JSON number, got {type(value).__name__}")
        if value is None or isinstance(value, bool):
            return cls(None if value is None else str(value).lower())
        return cls(str(value))

    def decimal(self) -> Decimal:
        if self.raw is None:
            raise ValueError("null is not a number")
        try:
            number = Decimal(self.raw.strip())
        except InvalidOperation as exc:
            raise ValueError(f"invalid number literal {self.raw!r}") from exc
        if not number.is_finite():
            raise ValueError(f"invalid number literal {self.raw!r}")
        return number

    def value(self) -> float:
        try:
            return float(self.decimal())
        except ValueError:
            return 0.0

    def __str__(self) -> str:
        return self.raw or ""


def _float(data: Mapping[str, Any], key: str) -> Optional[float]:
    """Return ``data[key]`` as a float; ``None`` only when missing or null."""

    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise DecodeError(f"field {key!r} should be a number, got {type(value).__name__}")
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise DecodeError(f"field {key!r} is not a number: {value!r}") from exc


def _int(data: Mapping[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise DecodeError(f"field {key!r} should be an integer, got {type(value).__name__}")
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise DecodeError(f"field {key!r} is not an integer: {value!r}") from exc


def _str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise DecodeError(f"field {key!r} should be a string, got {type(value).__name__}")
    return value


def _bool(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise DecodeError(f"field {key!r} should be a boolean, got {type(value).__name__}")
    return value


def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise DecodeError(f"expected a JSON object for {what}, got {type(payload).__name__}")
    return payload


class Pair(str):
    """A six letter trading pair such as ``BTCUSD``."""

    @property
    def base(self) -> str:
        return str(self[0:3]) if len(self) >= 3 else ""

    @property
    def counter(self) -> str:
        return str(self[3:6]) if len(self) >= 6 else ""


BTCUSD = Pair("BTCUSD")
BTCCNY = Pair("BTCCNY")


class HistoryResolution(str, Enum):
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"


@dataclass
class DWM:
    """Day, week and month values attached to ticker records."""

    day: FixedNumber = field(default_factory=FixedNumber)
    week: FixedNumber = field(default_factory=FixedNumber)
    month: FixedNumber = field(default_factory=FixedNumber)

    @classmethod
    def from_dict(cls, payload: Any) -> Optional["DWM"]:
        if payload is None:
            return None
        data = _require_mapping(payload, "DWM")
        return cls(
            day=FixedNumber.from_json(data.get("day")),
            week=FixedNumber.from_json(data.get("week")),
            month=FixedNumber.from_json(data.get("month")),
        )


@dataclass
class Changes:
    percent: Optional[DWM] = None
    price: Optional[DWM] = None

    @classmethod
    def from_dict(cls, payload: Any) -> Optional["Changes"]:
        if payload is None:
            return None
        data = _require_mapping(payload, "changes")
        return cls(percent=DWM.from_dict(data.get("percent")), price=DWM.from_dict(data.get("price")))


@dataclass
class Ticker:
    """Global index ticker for a single pair."""

    ask: Optional[float]
    bid: Optional[float]
    last: Optional[float]
    high: Optional[float]
    low: Optional[float]
    open: Optional[DWM]
    averages: Optional[DWM]
    changes: Optional[Changes]
    volume: Optional[float]
    volume_percent: Optional[float]
    timestamp: Optional[int]
    display_timestamp: Optional[str]
    success: bool
    time: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, payload: Any) -> "Ticker":
        data = _require_mapping(payload, "ticker")
        return cls(
            ask=_float(data, "ask"),
            bid=_float(data, "bid"),
            last=_float(data, "last"),
            high=_float(data, "high"),
            low=_float(data, "low"),
            open=DWM.from_dict(data.get("open")),
            averages=DWM.from_dict(data.get("averages")),
            changes=Changes.from_dict(data.get("changes")),
            volume=_float(data, "volume"),
            volume_percent=_float(data, "volume_percent"),
            timestamp=_int(data, "timestamp"),
            display_timestamp=_str(data, "display_timestamp"),
            success=_bool(data, "success"),
            time=_str(data, "time"),
            raw=dict(data),
        )


MultiTicker = Dict[str, Ticker]


def multi_ticker_from_dict(payload: Any) -> MultiTicker:
    data = _require_mapping(payload, "ticker map")
    return {str(symbol): Ticker.from_dict(entry) for symbol, entry in data.items()}


@dataclass
class ExchangeSymbol:
    last: Optional[float]
    volume: Optional[float]
    ask: Optional[float]
    bid: Optional[float]
    high: Optional[float]
    low: Optional[float]
    open: Optional[float]
    vwap: Optional[float]

    @classmethod
    def from_dict(cls, payload: Any) -> "ExchangeSymbol":
        data = _require_mapping(payload, "exchange symbol")
        return cls(**{name: _float(data, name) for name in ("last", "volume", "ask", "bid", "high", "low", "open", "vwap")})


@dataclass
class Exchange:
    """Full ticker data for a single exchange."""

    name: str
    display_name: Optional[str]
    url: Optional[str]
    timestamp: Optional[int]
    data_source: Optional[str]
    symbols: Dict[Pair, ExchangeSymbol]
    success: bool
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, payload: Any) -> "Exchange":
        data = _require_mapping(payload, "exchange")
        symbols = data.get("symbols") or {}
        if not isinstance(symbols, Mapping):
            raise DecodeError(f"expected a JSON object for exchange symbols, got {type(symbols).__name__}")
        return cls(
            name=_str(data, "name") or "",
            display_name=_str(data, "display_name"),
            url=_str(data, "url"),
            timestamp=_int(data, "timestamp"),
            data_source=_str(data, "data_source"),
            symbols={Pair(symbol): ExchangeSymbol.from_dict(entry) for symbol, entry in symbols.items()},
            success=_bool(data, "success"),
            raw=dict(data),
        )


def exchanges_from_list(payload: Any) -> List[Exchange]:
    if not isinstance(payload, list):
        raise DecodeError(f"expected a JSON array of exchanges, got {type(payload).__name__}")
    return [Exchange.from_dict(entry) for entry in payload]


@dataclass
class HistoryData:
    average: Optional[float]
    time: Optional[str]

    @classmethod
    def from_dict(cls, payload: Any) -> "HistoryData":
        data = _require_mapping(payload, "history")
        return cls(average=_float(data, "average"), time=_str(data, "time"))


@dataclass(frozen=True)
class StreamingTicket:
    """Short-lived credential used once to open a streaming socket."""

    ticket: str = field(repr=False)

    @classmethod
    def from_dict(cls, payload: Any) -> "StreamingTicket":
        data = _require_mapping(payload, "websocket ticket")
        ticket = data.get("ticket")
        if not isinstance(ticket, str):
            raise DecodeError(f"expected a string ticket, got {type(ticket).__name__}")
        return cls(ticket=ticket)


@dataclass
class SubscriptionAck:
    """Server response to a subscribe command."""

    event: Optional[str]
    data: Any

    @property
    def ok(self) -> bool:
        return self.data == "OK"

    @classmethod
    def from_dict(cls, payload: Any) -> "SubscriptionAck":
        data = _require_mapping(payload, "command response")
        if "data" not in data:
            raise DecodeError("command response is missing the data field")
        return cls(event=data.get("event"), data=data.get("data"))


def to_dict(record: Any) -> Dict[str, Any]:
    """Return a JSON-serializable view of a record, without the raw payload."""

    payload = asdict(record)
    payload.pop("raw", None)
    return payload


__all__ = [
    "loads",
    "to_dict",
    "FixedNumber",
    "Pair",
    "BTCUSD",
    "BTCCNY",
    "HistoryResolution",
    "DWM",
    "Changes",
    "Ticker",
    "MultiTicker",
    "multi_ticker_from_dict",
    "ExchangeSymbol",
    "Exchange",
    "exchanges_from_list",
    "HistoryData",
    "StreamingTicket",
    "SubscriptionAck",
]
