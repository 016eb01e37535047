from __future__ import annotations
import json
import logging
import math
import time
from typing import Any, Dict, Iterator, List, Optional

from parley.core.params import SamplingParams
from parley.providers.base import BaseProvider, ProviderState
from parley.providers.formats import ChatCompletionsFormat
from parley.providers.registry import ProviderRegistry

log = logging.getLogger(__name__)

_LOREM_50 = (
    "Lorem ipsum dolor sit amet consectetur adipiscing elit sed do eiusmod tempor "
    "incididunt ut labore et dolore magna aliqua Curabitur non nulla sit amet nisl "
    "tempor convallis quis ac lectus Phasellus viverra nulla ut metus varius laoreet "
    "Quisque rutrum Aenean imperdiet Etiam ultricies nisi vel augue Curabitur ullamcorper ultricies nisi"
).split()


@ProviderRegistry.register("echo")
class EchoProvider(BaseProvider):
    """
    Offline stub that returns a fixed 50-word lorem ipsum.
    Streaming renders the words as Chat Completions SSE frames, cuts the bytes
    into small chunks (so frames straddle chunk boundaries) and runs them
    through the regular decoder, with a small delay to simulate tokens.
    """
    name = "echo"
    label = "local"
    default_model = "echo-lorem"
    default_description = "Offline echo stub (no network)"
    default_endpoint = "local://echo"
    requires_api_key = False
    wire_format = ChatCompletionsFormat()

    def __init__(
        self,
        token_delay: float = 0.125,
        words: Optional[List[str]] = None,
        *,
        chunk_size: int = 7,
        sampling_defaults: Optional[SamplingParams] = None,
    ):
        super().__init__(sampling_defaults=sampling_defaults)
        self.token_delay = float(token_delay)
        self.chunk_size = int(chunk_size)
        self.words = list(words) if words is not None else list(_LOREM_50)

    def _on_initialized(self, state: ProviderState) -> None:
        self.token_delay = _setting(state.settings, "token_delay", float, self.token_delay)
        self.chunk_size = max(1, _setting(state.settings, "chunk_size", int, self.chunk_size))

    def _pieces(self) -> List[str]:
        last_idx = len(self.words) - 1
        return [w + ("" if i == last_idx else " ") for i, w in enumerate(self.words)]

    def _exchange(self, body: Dict[str, Any]) -> str:
        reply = "".join(self._pieces())
        return json.dumps({"choices": [{"index": 0, "message": {"role": "assistant", "content": reply}}]})

    def _open_stream(self, body: Dict[str, Any]) -> Iterator[bytes]:
        def gen():
            frames = [b": echo stream\n\n"]
            for piece in self._pieces():
                frame = {"choices": [{"index": 0, "delta": {"content": piece}}]}
                frames.append(b"data: " + json.dumps(frame).encode("utf-8") + b"\n\n")
            frames.append(b"data: [DONE]\n\n")
            raw = b"".join(frames)
            step = max(1, self.chunk_size)
            for i in range(0, len(raw), step):
                chunk = raw[i:i + step]
                yield chunk
                # roughly one pause per frame
                if self.token_delay > 0 and b"\n\n" in chunk:
                    time.sleep(self.token_delay)
        return gen()


def _setting(settings: Dict[str, str], key: str, cast, default):
    raw = settings.get(key)
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        log.warning("Invalid %s %r, using default %s", key, raw, default)
        return default
    if not math.isfinite(value) or value < 0:
        log.warning("Invalid %s %r, using default %s", key, raw, default)
        return default
    return value
