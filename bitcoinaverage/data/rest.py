"""Signed REST access to the BitcoinAverage API.

:class:`RequestExecutor` owns the HTTP session and attaches a freshly computed
``X-signature`` header to every request. :class:`TicketBroker` builds on it to
exchange credentials for a single-use streaming ticket.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any, Iterator, Mapping, Optional
from urllib.parse import urlencode

import requests

from .auth import Credentials, sign
from .errors import DecodeError, RemoteError, TransportError
from .models import StreamingTicket, loads

SIGNATURE_HEADER = "X-signature"
TICKET_PATH = "websocket/get_ticket"


def make_url(scheme: str, host: str, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build an absolute URL, normalizing ``path`` to start with a slash."""

    if path and not path.startswith("/"):
        path = "/" + path
    url = f"{scheme}://{host}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


class RequestExecutor:
    """Issues signed GET requests against a fixed host."""

    def __init__(
        self,
        credentials: Credentials,
        host: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.credentials = credentials
        self.host = host
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def signature(self) -> str:
        return sign(self.credentials.secret_key, self.credentials.public_key)

    @contextlib.contextmanager
    def execute(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Iterator[requests.Response]:
        """Send a signed GET and yield the open response.

        The response is closed when the ``with`` block exits, whichever way it
        exits. Non-success statuses raise :class:`RemoteError` with the body
        kept verbatim.
        """

        url = make_url("https", self.host, path, params)
        # signed here rather than when the URL is built so every send is fresh
        headers = {SIGNATURE_HEADER: self.signature()}
        self.logger.debug("GET %s", url, extra={"event": "rest_request", "path": path})
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout, stream=True)
        except requests.RequestException as exc:
            raise TransportError(f"doing request for {path}: {exc}") from exc

        try:
            if response.status_code >= 400:
                try:
                    body = response.text
                except requests.RequestException as exc:
                    raise TransportError(f"reading response for {path}: {exc}") from exc
                self.logger.warning(
                    "GET %s failed with status %s",
                    path,
                    response.status_code,
                    extra={"event": "rest_error", "path": path, "status": response.status_code},
                )
                raise RemoteError(path, response.status_code, response.reason or "", body)
            yield response
        finally:
            response.close()

    def get_json(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Execute a request and decode its JSON body."""

        with self.execute(path, params) as response:
            try:
                content = response.content
            except requests.RequestException as exc:
                raise TransportError(f"reading response for {path}: {exc}") from exc
            try:
                return loads(content)
            except DecodeError as exc:
                raise DecodeError(f"decoding JSON for {path}: {exc}") from exc


class TicketBroker:
    """Exchanges API credentials for a single-use streaming ticket."""

    def __init__(self, executor: RequestExecutor, logger: Optional[logging.Logger] = None) -> None:
        self.executor = executor
        self.logger = logger or logging.getLogger(__name__)

    def get_ticket(self) -> StreamingTicket:
        payload = self.executor.get_json(TICKET_PATH)
        try:
            ticket = StreamingTicket.from_dict(payload)
        except DecodeError as exc:
            raise DecodeError(f"decoding websocket ticket: {exc}") from exc
        self.logger.debug("Got socket ticket", extra={"event": "ticket_issued"})
        return ticket


__all__ = ["RequestExecutor", "TicketBroker", "make_url", "SIGNATURE_HEADER", "TICKET_PATH"]
