# src/parley/providers/formats.py
"""
Per-dialect translation between the generic conversation and a backend's
wire JSON. A provider varies only here: request path, request body, the
reply field of a full response, the content field of a stream frame, and
(optionally) a terminal stream event. The stream decoder is shared.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence

from parley.core.errors import SchemaError
from parley.core.params import SamplingParams
from parley.core.ports import Message


def _as_dict(payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise SchemaError(f"{what}: expected a JSON object, got {type(payload).__name__}")
    return payload


class WireFormat:
    path: str = ""

    def build_body(self, model: str, messages: Sequence[Message], sampling: SamplingParams, *, stream: bool) -> Dict[str, Any]:
        raise NotImplementedError

    def extract_reply(self, payload: Any) -> str:
        """Reply text of a full response; SchemaError when absent."""
        raise NotImplementedError

    def extract_delta(self, payload: Any) -> Optional[str]:
        """Content of one stream frame; None when the frame carries none."""
        raise NotImplementedError

    def is_terminal(self, payload: Any) -> bool:
        return False


class ChatCompletionsFormat(WireFormat):
    """
    Flat 'messages' in, 'choices' out. Spoken by DeepSeek, Ollama's OpenAI
    compatible endpoint and most hosted gateways.
    """
    path = "/v1/chat/completions"

    def build_body(self, model, messages, sampling, *, stream):
        return {
            "model": model,
            "messages": [m.to_wire() for m in messages],
            "temperature": sampling.temperature,
            "max_tokens": sampling.max_tokens,
            "stream": stream,
        }

    def extract_reply(self, payload):
        body = _as_dict(payload, "response")
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            raise SchemaError("response has no 'choices'")
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if not isinstance(message, dict) or "content" not in message:
            raise SchemaError("'choices[0].message.content' not found in response")
        return message.get("content") or ""

    def extract_delta(self, payload):
        frame = _as_dict(payload, "stream frame")
        if "error" in frame and "choices" not in frame:
            raise SchemaError(f"error event in stream: {frame['error']}")
        choices = frame.get("choices")
        if not isinstance(choices, list):
            raise SchemaError("stream frame has no 'choices'")
        if not choices:
            # usage-only trailer
            return None
        delta = choices[0].get("delta") if isinstance(choices[0], dict) else None
        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        return content if isinstance(content, str) else None


class ResponsesFormat(WireFormat):
    """
    Conversation nested under 'input'; replies under 'output[*].content[*]'.
    Streams are typed events; text arrives in 'response.output_text.delta'
    and 'response.completed' ends the stream.
    """
    path = "/v1/responses"

    DELTA_EVENT = "response.output_text.delta"
    TERMINAL_EVENTS = ("response.completed",)

    def build_body(self, model, messages, sampling, *, stream):
        return {
            "model": model,
            "input": [m.to_wire() for m in messages],
            "temperature": sampling.temperature,
            "max_output_tokens": sampling.max_tokens,
            "stream": stream,
        }

    def extract_reply(self, payload):
        body = _as_dict(payload, "response")
        if isinstance(body.get("output_text"), str):
            return body["output_text"]
        output = body.get("output")
        if not isinstance(output, list):
            raise SchemaError("response has no 'output'")
        parts: List[str] = []
        found = False
        for item in output:
            if not isinstance(item, dict):
                continue
            for content in item.get("content") or []:
                if isinstance(content, dict) and content.get("type") == "output_text":
                    found = True
                    parts.append(str(content.get("text") or ""))
        if not found:
            raise SchemaError("no 'output_text' content found in response")
        return "".join(parts)

    def extract_delta(self, payload):
        event = _as_dict(payload, "stream event")
        kind = event.get("type")
        if kind == "error" or kind == "response.failed":
            raise SchemaError(f"error event in stream: {event.get('error') or event.get('message')}")
        if kind != self.DELTA_EVENT:
            return None
        delta = event.get("delta")
        if not isinstance(delta, str):
            raise SchemaError("'delta' missing from output_text.delta event")
        return delta

    def is_terminal(self, payload):
        return isinstance(payload, dict) and payload.get("type") in self.TERMINAL_EVENTS
