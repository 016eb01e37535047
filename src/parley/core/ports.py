from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Mapping, NamedTuple, Optional, Protocol, Sequence, Tuple, Union

# on_delta(text, is_final)
DeltaSink = Callable[[str, bool], None]


@dataclass(frozen=True)
class Message:
    """
    One conversation turn. Order inside the enclosing sequence is the
    conversation order and is sent to the backend as-is.
    """
    role: str
    content: str
    message_id: Optional[str] = None
    timestamp: float = 0

    @classmethod
    def coerce(cls, value: Union["Message", Mapping[str, Any]]) -> "Message":
        if isinstance(value, Message):
            return value
        return cls(
            role=str(value.get("role", "")),
            content=str(value.get("content", "")),
            message_id=value.get("message_id") or value.get("id"),
            timestamp=value.get("timestamp") or 0,
        )

    def to_wire(self) -> dict:
        return {"role": self.role, "content": self.content}


class DecodedDelta(NamedTuple):
    text: str
    is_final: bool


@dataclass(frozen=True)
class ModelInfo:
    name: str
    description: str
    provider: str
    endpoint: str
    available: bool = False


Messages = Sequence[Union[Message, Mapping[str, Any]]]
RequestParams = Optional[Mapping[str, str]]


class Provider(Protocol):
    """
    Interface the core uses to talk to any LLM backend.
    """

    def initialize(self, config: Mapping[str, str]) -> bool:
        """
        Read credentials/endpoint from config. Returns False (and stays
        unavailable) when a mandatory credential is missing.
        """
        ...

    def is_available(self) -> bool: ...

    def identity(self) -> Tuple[str, str]:
        """(name, description); static, no I/O."""
        ...

    def model_info(self) -> ModelInfo: ...

    def send_message(self, messages: Messages, params: RequestParams = None) -> str:
        """
        Synchronous call. Returns the assistant reply text.
        Raises a ProviderError subclass on failure.
        """
        ...

    def send_message_stream(self, messages: Messages, params: RequestParams, on_delta: DeltaSink) -> str:
        """
        Streaming call. on_delta(text, False) per delta, then on_delta("", True)
        exactly once. Returns the aggregated reply.
        """
        ...

    def stream(self, messages: Messages, params: RequestParams = None) -> Iterator[str]:
        """
        Pull-based streaming. Yields text chunks as they arrive.
        """
        ...


def normalise_messages(messages: Iterable[Union[Message, Mapping[str, Any]]]) -> list:
    return [Message.coerce(m) for m in messages]
