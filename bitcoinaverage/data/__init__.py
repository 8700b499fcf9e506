"""Data access layer for the BitcoinAverage REST and streaming APIs."""

from .auth import Credentials, sign, verify
from .channels import ChannelClosed, StopSignal, StreamChannel
from .clients import BitcoinAverageClient
from .errors import (
    BitcoinAverageError,
    DecodeError,
    ProtocolError,
    RemoteError,
    StreamConnectionError,
    SubscriptionRejected,
    TransportError,
)
from .models import DWM, Exchange, FixedNumber, HistoryData, HistoryResolution, Pair, StreamingTicket, Ticker
from .monitor import StreamMonitor, StreamSession
from .rest import RequestExecutor, TicketBroker
from .websocket import EXCHANGE_STREAM, TICKER_STREAM, ExchangeTopic, SocketSession, StreamKind, TickerTopic

__all__ = [
    "BitcoinAverageClient",
    "BitcoinAverageError",
    "ChannelClosed",
    "Credentials",
    "DecodeError",
    "DWM",
    "EXCHANGE_STREAM",
    "Exchange",
    "ExchangeTopic",
    "FixedNumber",
    "HistoryData",
    "HistoryResolution",
    "Pair",
    "ProtocolError",
    "RemoteError",
    "RequestExecutor",
    "SocketSession",
    "StopSignal",
    "StreamChannel",
    "StreamConnectionError",
    "StreamKind",
    "StreamMonitor",
    "StreamSession",
    "StreamingTicket",
    "SubscriptionRejected",
    "TICKER_STREAM",
    "TicketBroker",
    "Ticker",
    "TickerTopic",
    "TransportError",
    "sign",
    "verify",
]
