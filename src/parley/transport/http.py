# src/parley/transport/http.py
"""
Thin HTTP transport used by every network-backed provider.

Two modes:
- post(): blocking request/response, returns status + body text.
- iter_stream(): chunked read; raw byte ranges are yielded as they arrive and
  closing the generator stops reading early.

Timeouts and proxying live here, never in the providers or the decoder.
"""
from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping, Optional

import httpx

from parley.core.errors import NetworkError, ProtocolError, StreamInterruptedError

log = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_READ_TIMEOUT = 60.0
DEFAULT_STREAM_READ_TIMEOUT = 300.0  # generation can be slow to finish


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpTransport:
    """
    Wraps one httpx.Client bound to a provider endpoint.
    `transport` lets tests inject httpx.MockTransport.
    """

    def __init__(
        self,
        base_url: str,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        stream_read_timeout: float = DEFAULT_STREAM_READ_TIMEOUT,
        proxy: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        self.stream_timeout = httpx.Timeout(stream_read_timeout, connect=connect_timeout)

        client_kwargs: Dict[str, Any] = {"base_url": self.base_url, "headers": dict(headers or {})}
        if proxy:
            client_kwargs["proxy"] = proxy
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)

    def post(self, path: str, body: Dict[str, Any], headers: Optional[Mapping[str, str]] = None) -> HttpResponse:
        t0 = time.perf_counter()
        try:
            r = self._client.post(path, json=body, headers=dict(headers or {}), timeout=self.timeout)
        except httpx.TransportError as e:
            log.error("POST %s%s failed (network): %s", self.base_url, path, e)
            raise NetworkError(f"{type(e).__name__}: {e}") from e
        log.info(
            "POST %s%s -> %s in %d ms",
            self.base_url, path, r.status_code, int((time.perf_counter() - t0) * 1000),
        )
        return HttpResponse(status_code=r.status_code, text=r.text)

    def iter_stream(
        self,
        path: str,
        body: Dict[str, Any],
        headers: Optional[Mapping[str, str]] = None,
    ) -> Iterator[bytes]:
        """
        Yields raw byte ranges as they arrive. Closing the generator stops the
        read and releases the connection. Raises ProtocolError on a non-2xx
        status (body read first), NetworkError if the exchange never opened,
        StreamInterruptedError if it broke mid-body.
        """
        opened = False
        try:
            with self._client.stream(
                "POST", path, json=body, headers=dict(headers or {}), timeout=self.stream_timeout
            ) as r:
                if not r.is_success:
                    try:
                        r.read()
                        body_text = r.text
                    except httpx.TransportError as e:
                        log.warning("POST %s%s error body unreadable: %s", self.base_url, path, e)
                        body_text = ""
                    log.error("POST %s%s stream refused: %s %s", self.base_url, path, r.status_code, body_text[:200])
                    raise ProtocolError(r.status_code, body_text)
                opened = True
                log.info("POST %s%s stream opened: %s", self.base_url, path, r.status_code)
                for chunk in r.iter_bytes():
                    yield chunk
        except httpx.TransportError as e:
            if opened:
                raise StreamInterruptedError(f"{type(e).__name__}: {e}") from e
            log.error("POST %s%s failed (network): %s", self.base_url, path, e)
            raise NetworkError(f"{type(e).__name__}: {e}") from e

    def close(self) -> None:
        self._client.close()
