# src/parley/providers/base.py
"""
Shared provider plumbing. A concrete provider supplies identity, defaults,
a WireFormat and two raw I/O hooks (_exchange, _open_stream); everything
between the raw bytes and the caller (defaulting, decoding, aggregation,
the final-event guarantee) happens here once.
"""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from parley.core.errors import ConfigError, ParseError, StreamInterruptedError, UnavailableError
from parley.core.params import SamplingParams, resolve_sampling
from parley.core.ports import DeltaSink, Messages, ModelInfo, RequestParams, normalise_messages
from parley.providers.formats import ChatCompletionsFormat, WireFormat
from parley.streaming.aggregator import ResponseAggregator
from parley.streaming.decoder import StreamDecoder

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderState:
    """Written by initialize(), read-only afterwards."""
    model: str
    description: str
    endpoint: str
    api_key: Optional[str] = field(default=None, repr=False)
    available: bool = False
    settings: Dict[str, str] = field(default_factory=dict)


class BaseProvider:
    name: str = "base"
    label: str = "base"
    default_model: str = ""
    default_description: str = ""
    default_endpoint: str = ""
    requires_api_key: bool = True
    wire_format: WireFormat = ChatCompletionsFormat()

    def __init__(self, *, sampling_defaults: Optional[SamplingParams] = None):
        self._sampling_defaults = sampling_defaults or SamplingParams()
        self._state = ProviderState(
            model=self.default_model,
            description=self.default_description,
            endpoint=self.default_endpoint,
        )

    @classmethod
    def create(cls, config: Mapping[str, Any], **kwargs: Any) -> "BaseProvider":
        """Construct and initialize; raises ConfigError instead of returning False."""
        provider = cls(**kwargs)
        if not provider.initialize(config):
            raise ConfigError(f"No API key for '{cls.name}'")
        return provider

    # ----- contract: state -----

    def initialize(self, config: Mapping[str, Any]) -> bool:
        cfg = {str(k): ("" if v is None else str(v)) for k, v in (config or {}).items()}
        api_key = cfg.get("api_key", "").strip() or None
        endpoint = cfg.get("endpoint", "").strip() or self.default_endpoint

        if self.requires_api_key and not api_key:
            log.error("%s initialize: 'api_key' not found in config", self.name)
            self._state = replace(self._state, api_key=None, available=False)
            return False

        self._state = ProviderState(
            model=cfg.get("model_name", "").strip() or self.default_model,
            description=cfg.get("model_desc", "").strip() or self.default_description,
            endpoint=endpoint,
            api_key=api_key,
            available=False,
            settings=cfg,
        )
        self._on_initialized(self._state)
        self._state = replace(self._state, available=True)
        log.info("%s init success. Endpoint: %s", self.name, endpoint)
        return True

    def is_available(self) -> bool:
        return self._state.available

    def identity(self) -> Tuple[str, str]:
        return self._state.model, self._state.description

    def model_info(self) -> ModelInfo:
        s = self._state
        return ModelInfo(
            name=s.model,
            description=s.description,
            provider=self.label,
            endpoint=s.endpoint,
            available=s.available,
        )

    # ----- contract: calls -----

    def send_message(self, messages: Messages, params: RequestParams = None) -> str:
        self._require_available("send_message")
        body = self._build_body(messages, params, stream=False)
        text = self._exchange(body)
        try:
            payload = json.loads(text)
        except ValueError as e:
            log.error("%s: JSON parse failed: %s", self.name, e)
            raise ParseError(f"{self.name}: response is not valid JSON: {e}") from e
        reply = self.wire_format.extract_reply(payload)
        log.debug("%s reply (%d chars)", self.name, len(reply))
        return reply

    def send_message_stream(self, messages: Messages, params: RequestParams, on_delta: DeltaSink) -> str:
        aggregator = ResponseAggregator(on_delta)
        if not self.is_available():
            aggregator("", True)
        self._require_available("send_message_stream")

        body = self._build_body(messages, params, stream=True)
        decoder = self._decoder(aggregator)
        for _ in self._pump(body, decoder):
            pass
        aggregator.mark_completion(decoder.completed_by_sentinel)
        return aggregator.text

    def stream(self, messages: Messages, params: RequestParams = None) -> Iterator[str]:
        self._require_available("stream")
        body = self._build_body(messages, params, stream=True)
        pending: List[str] = []

        def collect(text: str, is_final: bool) -> None:
            if text:
                pending.append(text)

        decoder = self._decoder(collect)
        pump = self._pump(body, decoder)

        def gen():
            try:
                for _ in pump:
                    while pending:
                        yield pending.pop(0)
                while pending:
                    yield pending.pop(0)
            finally:
                pump.close()
        return gen()

    # ----- hooks -----

    def _on_initialized(self, state: ProviderState) -> None:
        """Build per-endpoint resources (transport) for a fresh state."""

    def _exchange(self, body: Dict[str, Any]) -> str:
        """One blocking request; returns the success body text."""
        raise NotImplementedError

    def _open_stream(self, body: Dict[str, Any]) -> Iterator[bytes]:
        """Raw byte ranges of the streamed reply."""
        raise NotImplementedError

    def _headers(self, *, stream: bool) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._state.api_key:
            headers["Authorization"] = f"Bearer {self._state.api_key}"
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    # ----- internals -----

    def _require_available(self, op: str) -> None:
        if not self.is_available():
            log.error("%s %s: provider is not available (not initialized)", self.name, op)
            raise UnavailableError(f"Provider '{self.name}' is not initialized")

    def _build_body(self, messages: Messages, params: RequestParams, *, stream: bool) -> Dict[str, Any]:
        sampling = resolve_sampling(params, self._sampling_defaults)
        body = self.wire_format.build_body(self._state.model, normalise_messages(messages), sampling, stream=stream)
        log.debug("%s request body: %s", self.name, body)
        return body

    def _decoder(self, sink: DeltaSink) -> StreamDecoder:
        return StreamDecoder(
            self.wire_format.extract_delta,
            sink,
            is_terminal=self.wire_format.is_terminal,
            label=f"{self.name} stream",
        )

    def _pump(self, body: Dict[str, Any], decoder: StreamDecoder) -> Iterator[None]:
        """
        Feeds raw chunks into the decoder, yielding after each one. Whatever
        ends the stream (sentinel, EOF, transport error, early close), the
        decoder is closed so exactly one final event reaches the sink.
        Errors from before the stream opened still propagate.
        """
        chunks = self._open_stream(body)
        try:
            for chunk in chunks:
                decoder.feed(chunk)
                yield None
                if decoder.terminated:
                    break
        except StreamInterruptedError as e:
            log.warning("%s stream interrupted after %d deltas: %s", self.name, decoder.deltas_emitted, e)
        finally:
            close = getattr(chunks, "close", None)
            if close is not None:
                close()
            decoder.close()
