# tests/unit/test_stream_decoder.py

from __future__ import annotations
import json
import sys
from pathlib import Path

import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from parley.core.errors import SchemaError
from parley.streaming.aggregator import ResponseAggregator
from parley.streaming.decoder import StreamDecoder, classify_frame, BLANK, COMMENT, DATA, UNKNOWN


def simple_delta(payload):
    # test dialect: {"delta": "..."}
    if not isinstance(payload, dict) or "delta" not in payload:
        raise SchemaError("no 'delta'")
    return payload["delta"]


def run(chunks, extract=simple_delta, close=True, **kw):
    events = []
    dec = StreamDecoder(extract, lambda t, f: events.append((t, f)), **kw)
    for c in chunks:
        dec.feed(c)
    if close:
        dec.close()
    return events, dec


HELLO = (
    b'data: {"delta":"Hel"}\n\n'
    b'data: {"delta":"lo"}\n\n'
    b"data: [DONE]\n\n"
)


def test_single_chunk_hello():
    events, dec = run([HELLO])
    assert events == [("Hel", False), ("lo", False), ("", True)]
    assert dec.completed_by_sentinel is True


def test_byte_by_byte_hello():
    events, _ = run([HELLO[i:i + 1] for i in range(len(HELLO))])
    assert events == [("Hel", False), ("lo", False), ("", True)]


def test_every_split_position_yields_same_events():
    frames = [{"delta": f"w{i} "} for i in range(5)]
    raw = b"".join(b"data: " + json.dumps(f).encode() + b"\n\n" for f in frames) + b"data: [DONE]\n\n"
    expected, _ = run([raw])
    assert len(expected) == 6

    for i in range(len(raw) + 1):
        got, _ = run([raw[:i], raw[i:]])
        assert got == expected, f"split at {i}"

    for i in range(1, len(raw)):
        for j in range(i, len(raw), 7):
            got, _ = run([raw[:i], raw[i:j], raw[j:]])
            assert got == expected, f"split at {i},{j}"


def test_aggregate_is_ordered_concatenation():
    agg = ResponseAggregator()
    dec = StreamDecoder(simple_delta, agg)
    dec.feed(HELLO[:10])
    dec.feed(HELLO[10:])
    dec.close()
    assert agg.text == "Hello"
    assert agg.finished


def test_missing_sentinel_synthesises_one_final():
    events, dec = run([b'data: {"delta":"Hi"}\n\n'])
    assert events == [("Hi", False), ("", True)]
    assert dec.completed_by_sentinel is False
    # closing again does not emit a second final
    dec.close()
    assert events.count(("", True)) == 1


def test_empty_stream_still_finishes():
    events, _ = run([])
    assert events == [("", True)]


def test_comment_and_blank_frames_are_silent():
    raw = b": keep-alive\n\n\n\n:another\n\ndata: {\"delta\":\"x\"}\n\ndata: [DONE]\n\n"
    events, _ = run([raw])
    assert events == [("x", False), ("", True)]


def test_malformed_json_frame_is_skipped():
    raw = b'data: {"delta":"a"}\n\ndata: {not json\n\ndata: {"delta":"b"}\n\ndata: [DONE]\n\n'
    events, dec = run([raw])
    assert events == [("a", False), ("b", False), ("", True)]
    assert dec.frames_skipped == 1


def test_schema_miss_is_skipped():
    raw = b'data: {"other":1}\n\ndata: {"delta":"ok"}\n\ndata: [DONE]\n\n'
    events, dec = run([raw])
    assert events == [("ok", False), ("", True)]
    assert dec.frames_skipped == 1


def test_unrecognized_frames_are_ignored():
    raw = b'retry: 1000\n\nweird line\n\ndata: {"delta":"z"}\n\ndata: [DONE]\n\n'
    events, _ = run([raw])
    assert events == [("z", False), ("", True)]


def test_empty_content_is_not_emitted():
    raw = b'data: {"delta":""}\n\ndata: {"delta":"q"}\n\ndata: [DONE]\n\n'
    events, _ = run([raw])
    assert events == [("q", False), ("", True)]


def test_frames_after_done_are_ignored():
    events, dec = run([HELLO + b'data: {"delta":"late"}\n\n'], close=False)
    dec.feed(b'data: {"delta":"later"}\n\n')
    dec.close()
    assert events == [("Hel", False), ("lo", False), ("", True)]


def test_crlf_delimiters_split_across_chunks():
    raw = b'data: {"delta":"a"}\r\n\r\ndata: {"delta":"b"}\r\n\r\ndata: [DONE]\r\n\r\n'
    whole, _ = run([raw])
    assert whole == [("a", False), ("b", False), ("", True)]
    for i in range(len(raw) + 1):
        got, _ = run([raw[:i], raw[i:]])
        assert got == whole, f"split at {i}"


def test_multibyte_utf8_split_across_chunks():
    raw = 'data: {"delta":"héllo 世界"}\n\ndata: [DONE]\n\n'.encode("utf-8")
    cut = raw.index("世".encode("utf-8")) + 1  # inside the 3-byte sequence
    events, _ = run([raw[:cut], raw[cut:]])
    assert events == [("héllo 世界", False), ("", True)]


def test_event_lines_and_terminal_predicate():
    raw = (
        b'event: response.output_text.delta\ndata: {"type":"d","delta":"A"}\n\n'
        b'event: response.completed\ndata: {"type":"end"}\n\n'
        b'data: {"type":"d","delta":"never"}\n\n'
    )
    events, dec = run(
        [raw],
        extract=lambda p: p.get("delta"),
        is_terminal=lambda p: p.get("type") == "end",
    )
    assert events == [("A", False), ("", True)]
    assert dec.completed_by_sentinel is True


def test_buffer_holds_only_the_unfinished_tail():
    dec = StreamDecoder(simple_delta, lambda t, f: None)
    for _ in range(100):
        dec.feed(b'data: {"delta":"xxxxxxxxxx"}\n\n')
    dec.feed(b'data: {"del')
    assert dec.buffered == len(b'data: {"del')


def test_sink_reference_dropped_after_close():
    events = []
    dec = StreamDecoder(simple_delta, lambda t, f: events.append((t, f)))
    dec.close()
    dec.feed(b'data: {"delta":"x"}\n\n')
    assert events == [("", True)]


@pytest.mark.parametrize(
    "frame,kind",
    [
        ("", BLANK),
        ("   ", BLANK),
        (": ping", COMMENT),
        ("data: {}", DATA),
        ("data:{}", DATA),
        ("event: x", UNKNOWN),
        ("garbage", UNKNOWN),
    ],
)
def test_classify_frame(frame, kind):
    assert classify_frame(frame)[0] == kind


def test_multi_line_data_is_joined():
    kind, payload = classify_frame('data: {"delta":\ndata: "x"}')
    assert kind == DATA
    assert json.loads(payload) == {"delta": "x"}
