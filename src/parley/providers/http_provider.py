from __future__ import annotations
import logging
from typing import Any, Dict, Iterator, Optional

import httpx

from parley.core.errors import ProtocolError
from parley.core.params import SamplingParams
from parley.providers.base import BaseProvider, ProviderState
from parley.transport.http import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_STREAM_READ_TIMEOUT,
    HttpTransport,
)

log = logging.getLogger(__name__)


def _seconds(settings: Dict[str, str], key: str, default: float) -> float:
    raw = settings.get(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Invalid %s %r, using default %s", key, raw, default)
        return default


class HttpChatProvider(BaseProvider):
    """
    Provider reached over HTTP(S). Subclasses pick identity, endpoint default
    and wire format; transport settings come from the provider config:
    connect_timeout, read_timeout, stream_read_timeout, proxy.
    """

    def __init__(
        self,
        *,
        sampling_defaults: Optional[SamplingParams] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(sampling_defaults=sampling_defaults)
        self._mount = http_transport
        self._http: Optional[HttpTransport] = None

    def _on_initialized(self, state: ProviderState) -> None:
        if self._http is not None:
            self._http.close()
        s = state.settings
        self._http = HttpTransport(
            state.endpoint,
            connect_timeout=_seconds(s, "connect_timeout", DEFAULT_CONNECT_TIMEOUT),
            read_timeout=_seconds(s, "read_timeout", DEFAULT_READ_TIMEOUT),
            stream_read_timeout=_seconds(s, "stream_read_timeout", DEFAULT_STREAM_READ_TIMEOUT),
            proxy=s.get("proxy") or None,
            transport=self._mount,
        )

    def _exchange(self, body: Dict[str, Any]) -> str:
        resp = self._http.post(self.wire_format.path, body, self._headers(stream=False))
        if not resp.ok:
            log.error("%s request failed. Status: %s, Body: %s", self.name, resp.status_code, resp.text[:500])
            raise ProtocolError(resp.status_code, resp.text)
        return resp.text

    def _open_stream(self, body: Dict[str, Any]) -> Iterator[bytes]:
        return self._http.iter_stream(self.wire_format.path, body, self._headers(stream=True))

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None
