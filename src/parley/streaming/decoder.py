# src/parley/streaming/decoder.py
"""
Incremental decoder for text/event-stream bodies.

Raw byte chunks go in through feed(); (text, is_final) events come out
through the sink. Chunk boundaries are arbitrary: a delimiter may straddle
two chunks and one chunk may carry several frames. Only the unfinished tail
is buffered, so memory tracks the longest single frame, not the reply.
"""
from __future__ import annotations
import json
import logging
from typing import Any, Callable, Optional, Tuple

from parley.core.errors import ParseError, SchemaError
from parley.core.ports import DecodedDelta, DeltaSink
from parley.logging_setup import TRACE

log = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
_DELIMITER = b"\n\n"

# Frame kinds
COMMENT = "comment"
BLANK = "blank"
DATA = "data"
UNKNOWN = "unknown"


def classify_frame(frame: str) -> Tuple[str, Optional[str]]:
    """
    Returns (kind, payload). payload is the joined data lines for DATA frames,
    None otherwise. Field lines other than data (event:, id:, retry:) are
    tolerated and ignored.
    """
    if not frame.strip():
        return BLANK, None
    if frame.startswith(":"):
        return COMMENT, None

    data_lines = []
    for line in frame.split("\n"):
        if not line or line.startswith(":"):
            continue
        field, sep, value = line.partition(":")
        if not sep:
            continue
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            data_lines.append(value)

    if not data_lines:
        return UNKNOWN, None
    return DATA, "\n".join(data_lines)


class StreamDecoder:
    """
    One decoder per stream; not shared between calls.

    extract_delta(payload) returns the content text of a data frame, or None
    when the frame carries no content (role-only chunks, bookkeeping events).
    It raises SchemaError when the payload does not have the expected shape.
    is_terminal(payload), when given, marks backend-specific end events that
    count as the sentinel.
    """

    def __init__(
        self,
        extract_delta: Callable[[Any], Optional[str]],
        sink: DeltaSink,
        *,
        is_terminal: Optional[Callable[[Any], bool]] = None,
        sentinel: str = DONE_SENTINEL,
        label: str = "stream",
    ):
        self._extract = extract_delta
        self._is_terminal = is_terminal
        self._sink: Optional[DeltaSink] = sink
        self._sentinel = sentinel
        self.label = label

        self._buf = b""
        self._terminated = False
        self._closed = False
        self.completed_by_sentinel = False

        self.frames_seen = 0
        self.frames_skipped = 0
        self.deltas_emitted = 0

    @property
    def terminated(self) -> bool:
        """True once the single final event has been delivered."""
        return self._terminated

    @property
    def buffered(self) -> int:
        return len(self._buf)

    def feed(self, data: bytes) -> None:
        if self._terminated or self._closed or not data:
            return
        log.log(TRACE, "%s chunk (%d bytes): %r", self.label, len(data), data)

        # CRLF -> LF over the whole tail so a \r\n split across chunks still folds.
        self._buf = (self._buf + data).replace(b"\r\n", b"\n")

        while not self._terminated:
            pos = self._buf.find(_DELIMITER)
            if pos < 0:
                break
            raw = self._buf[:pos]
            self._buf = self._buf[pos + len(_DELIMITER):]
            self._handle_frame(raw)

    def close(self) -> None:
        """
        End of input: normal EOF, transport error or cancellation.
        Synthesises the final event if no sentinel was seen, then drops the sink.
        """
        if self._closed:
            return
        self._closed = True
        try:
            if not self._terminated:
                if self._buf.strip():
                    log.warning("%s ended with %d undelimited bytes; discarding", self.label, len(self._buf))
                log.warning("%s ended without [DONE] marker", self.label)
                self._finish(by_sentinel=False)
        finally:
            self._buf = b""
            self._sink = None

    # Internal helpers

    def _handle_frame(self, raw: bytes) -> None:
        self.frames_seen += 1
        try:
            frame = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            self.frames_skipped += 1
            log.warning("%s frame is not valid UTF-8, skipped: %s", self.label, e)
            return

        kind, payload = classify_frame(frame)
        if kind != DATA:
            if kind == UNKNOWN:
                log.debug("%s unrecognized frame ignored: %.80r", self.label, frame)
            return

        if payload.strip() == self._sentinel:
            self._finish(by_sentinel=True)
            return
        if not payload.strip():
            return

        try:
            obj = _loads(payload)
            if self._is_terminal is not None and self._is_terminal(obj):
                self._finish(by_sentinel=True)
                return
            text = self._extract(obj)
        except (ParseError, SchemaError) as e:
            # One bad frame never aborts the stream.
            self.frames_skipped += 1
            log.warning("%s frame skipped (%s): %s", self.label, type(e).__name__, e)
            return

        if text:
            self.deltas_emitted += 1
            self._emit(DecodedDelta(text, False))

    def _finish(self, *, by_sentinel: bool) -> None:
        self._terminated = True
        self.completed_by_sentinel = by_sentinel
        self._buf = b""
        self._emit(DecodedDelta("", True))

    def _emit(self, event: DecodedDelta) -> None:
        sink = self._sink
        if sink is not None:
            sink(*event)


def _loads(payload: str) -> Any:
    try:
        return json.loads(payload)
    except ValueError as e:
        raise ParseError(f"invalid JSON frame: {e}") from e
