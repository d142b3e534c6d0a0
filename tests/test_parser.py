from eventsource.client.parser import StreamParser
from eventsource.shared.models import Event, ReadyState


def parse_all(chunks, parser=None):
    parser = parser or StreamParser()
    events = []
    for chunk in chunks:
        events.extend(parser.feed(chunk))
    return events


def test_example_block_yields_one_event():
    events = parse_all([b"id: 1\nevent: update\ndata: hello\ndata: world\n\n"])

    assert events == [Event(event_id="1", event_type="update", data="hello\nworld")]


def test_missing_event_field_defaults_to_message():
    [event] = parse_all([b"data: hi\n\n"])

    assert event.event_type == "message"
    assert event.event_id is None
    assert event.ready_state is ReadyState.CONNECTING


def test_event_is_only_emitted_on_blank_line():
    parser = StreamParser()

    assert parser.feed(b"data: partial\n") == []
    assert parser.feed(b"\n") == [Event(data="partial")]


def test_chunk_boundary_invariance():
    stream = (
        "retry: 10\n"
        ": keep-alive\r\n"
        "id: 7\r\n"
        "data: café\r\n"
        "\r\n"
        "event: ping\r"
        "data\r"
        "\r"
        "data: x\n"
        "\n"
    ).encode("utf-8")
    whole = parse_all([stream])

    assert [e.event_type for e in whole] == ["message", "ping", "message"]
    assert whole[0].data == "café"
    for cut in range(len(stream) + 1):
        assert parse_all([stream[:cut], stream[cut:]]) == whole
    for size in (1, 2, 3, 7):
        chunks = [stream[i:i + size] for i in range(0, len(stream), size)]
        assert parse_all(chunks) == whole


def test_crlf_split_across_chunks_is_one_line_break():
    events = parse_all([b"data: a\r", b"\ndata: b\r\n\r", b"\n"])

    assert events == [Event(data="a\nb")]


def test_comments_and_lone_blank_lines_are_ignored():
    assert parse_all([b": hello\n\n\n: again\n\n"]) == []


def test_only_one_leading_space_is_stripped():
    [event] = parse_all([b"data:  two spaces\ndata:none\n\n"])

    assert event.data == " two spaces\nnone"


def test_line_without_colon_is_field_with_empty_value():
    [event] = parse_all([b"data\ndata\n\n"])

    assert event.data == "\n"


def test_unknown_fields_are_ignored():
    assert parse_all([b"foo: bar\nbaz\n\n"]) == []

    [event] = parse_all([b"foo: bar\ndata: kept\n\n"])
    assert event.data == "kept"


def test_last_id_and_event_occurrence_wins():
    [event] = parse_all([b"id: 1\nid: 2\nevent: a\nevent: b\n\n"])

    assert event.event_id == "2"
    assert event.event_type == "b"
    assert event.data == ""


def test_id_only_block_still_produces_event():
    [event] = parse_all([b"id: 42\n\n"])

    assert event.event_id == "42"
    assert event.event_type == "message"


def test_id_containing_nul_is_ignored():
    [event] = parse_all([b"id: bad\x00id\ndata: x\n\n"])

    assert event.event_id is None


def test_retry_field_reports_delay():
    seen = []
    parser = StreamParser(on_retry=seen.append)

    events = parse_all([b"retry: 1500\n\n", b"retry: abc\nretry: -5\nretry: 1.5\nretry:\n\n"], parser)

    assert seen == [1500]
    assert events == []


def test_leading_bom_is_discarded():
    [event] = parse_all([b"\xef\xbb", b"\xbfdata: a\n\n"])

    assert event.data == "a"


def test_invalid_utf8_is_replaced():
    [event] = parse_all([b"data: \xff\xfe\n\n"])

    assert event.data == "\ufffd\ufffd"


def test_reset_discards_partial_event():
    parser = StreamParser()
    parser.feed(b"event: half\ndata: lost\n")
    parser.reset()

    assert parser.feed(b"data: fresh\n\n") == [Event(data="fresh")]


def test_oversized_retry_is_skipped_and_parsing_continues():
    seen = []
    parser = StreamParser(on_retry=seen.append)

    events = parser.feed(b"retry: " + b"9" * 5000 + b"\ndata: after\n\nretry: 9999999999\n\n")

    assert seen == [9999999999]
    assert events == [Event(data="after")]
