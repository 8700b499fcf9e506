"""Client facade for the BitcoinAverage REST and streaming APIs."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

import requests

from bitcoinaverage.infra.config import ClientConfig

from .auth import Credentials
from .errors import DecodeError
from .models import (
    Exchange,
    HistoryData,
    HistoryResolution,
    MultiTicker,
    Pair,
    Ticker,
    exchanges_from_list,
    multi_ticker_from_dict,
)
from .monitor import StreamSession
from .rest import RequestExecutor, TicketBroker
from .websocket import EXCHANGE_STREAM, TICKER_STREAM, ConnectFactory, SocketSession, Topic

TICKERS_PATH = "/indices/global/ticker/all"
EXCHANGES_PATH = "/exchanges/ticker/all"
HISTORY_PATH = "/indices/global/history/{symbol}"


def _filters(cryptos: Optional[Iterable[str]], fiats: Optional[Iterable[str]]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    crypto_list = list(cryptos or [])
    fiat_list = list(fiats or [])
    if crypto_list:
        params["crypto"] = ",".join(crypto_list)
    if fiat_list:
        params["fiat"] = ",".join(fiat_list)
    return params


class BitcoinAverageClient:
    """Signed access to BitcoinAverage snapshots and live streams.

    REST methods are synchronous. Stream methods are coroutines returning a
    :class:`~.monitor.StreamSession` whose ``data``, ``errors`` and ``stop``
    handles are the only way to interact with the live socket.
    """

    def __init__(
        self,
        config: ClientConfig,
        session: Optional[requests.Session] = None,
        connect_factory: Optional[ConnectFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        credentials = Credentials(public_key=config.public_key, secret_key=config.secret_key)
        self.executor = RequestExecutor(
            credentials,
            config.host,
            session=session,
            timeout=config.timeout_seconds,
            logger=self.logger.getChild("rest"),
        )
        self.broker = TicketBroker(self.executor, logger=self.logger.getChild("ticket"))
        socket_options: Dict[str, Any] = {}
        if connect_factory is not None:
            socket_options["connect_factory"] = connect_factory
        self.sockets = SocketSession(
            broker=self.broker,
            host=config.host,
            public_key=config.public_key,
            data_buffer_size=config.data_buffer_size,
            error_buffer_size=config.error_buffer_size,
            ping_interval=config.ping_interval_seconds,
            logger=self.logger.getChild("stream"),
            **socket_options,
        )

    # --- REST snapshots ---------------------------------------------------
    def tickers(self, cryptos: Optional[Iterable[str]] = None, fiats: Optional[Iterable[str]] = None) -> MultiTicker:
        """Return global index tickers keyed by pair for the given filters."""

        payload = self.executor.get_json(TICKERS_PATH, _filters(cryptos, fiats))
        return self._decode(TICKERS_PATH, multi_ticker_from_dict, payload)

    def exchanges(self, cryptos: Optional[Iterable[str]] = None, fiats: Optional[Iterable[str]] = None) -> List[Exchange]:
        """Return per-exchange ticker data for the given filters."""

        payload = self.executor.get_json(EXCHANGES_PATH, _filters(cryptos, fiats))
        return self._decode(EXCHANGES_PATH, exchanges_from_list, payload)

    def price_at_timestamp(
        self,
        symbol: Union[Pair, str],
        at: Union[datetime, int, float],
        resolution: HistoryResolution = HistoryResolution.MINUTE,
    ) -> HistoryData:
        """Return the global average price for ``symbol`` at a point in time."""

        timestamp = int(at.timestamp()) if isinstance(at, datetime) else int(at)
        path = HISTORY_PATH.format(symbol=symbol)
        params = {"at": str(timestamp), "resolution": HistoryResolution(resolution).value}
        payload = self.executor.get_json(path, params)
        return self._decode(path, HistoryData.from_dict, payload)

    def _decode(self, path: str, decoder: Any, payload: Any) -> Any:
        try:
            return decoder(payload)
        except DecodeError as exc:
            raise DecodeError(f"decoding JSON for {path}: {exc}") from exc

    # --- Streams ----------------------------------------------------------
    async def ticker_stream(self, *tickers: Union[str, Topic]) -> StreamSession[Ticker]:
        """Open a live global ticker stream for the given currency pairs."""

        return await self.sockets.connect(TICKER_STREAM, tickers)

    async def exchange_stream(self, *exchanges: Union[str, Topic]) -> StreamSession[Exchange]:
        """Open a live stream for one or more exchanges."""

        return await self.sockets.connect(EXCHANGE_STREAM, exchanges)


__all__ = ["BitcoinAverageClient", "TICKERS_PATH", "EXCHANGES_PATH", "HISTORY_PATH"]
