import asyncio

import pytest
from fastapi.testclient import TestClient
from sse_starlette.sse import ServerSentEvent

from eventsource.client.parser import StreamParser
from eventsource.server.broker import broker
from eventsource.server.clock import time_message
from eventsource.server.main import app
from eventsource.server.routes.events import to_server_sent_event
from eventsource.shared.config import settings
from eventsource.shared.models import Event, PublishedEvent


def test_healthz():
    client = TestClient(app)

    assert client.get("/healthz").json() == {"status": "ok"}


def test_publish_endpoint_returns_stamped_event():
    client = TestClient(app)
    before = broker.last_event_id or 0

    resp = client.post("/publish", json={"event": "update", "data": "hello"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["event_id"] == before + 1
    assert body["event"] == "update"
    assert body["data"] == "hello"
    assert client.get("/stats").json()["last_event_id"] == before + 1


def test_publish_requires_data():
    client = TestClient(app)

    assert client.post("/publish", json={"event": "update"}).status_code == 422


def test_encoded_frames_parse_back_into_events():
    retries = []
    parser = StreamParser(on_retry=retries.append)
    published = PublishedEvent(event_id=9, event="update", data="line one\nline two", published_at="2024-01-01T00:00:00Z")
    hello = ServerSentEvent(comment="connected", retry=1500)

    events = parser.feed(hello.encode() + to_server_sent_event(published).encode())

    assert retries == [1500]
    assert events == [Event(event_id="9", event_type="update", data="line one\nline two")]


def test_time_message_format():
    assert time_message().startswith("the time is ")


async def read_event_stream(headers: dict[str, str], on_body) -> bytes:
    """
    Drives GET /events through the ASGI app until `on_body` returns True, then disconnects.
    TestClient waits for the whole response body, which never ends for an event stream.
    """
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/events",
        "raw_path": b"/events",
        "query_string": b"",
        "root_path": "",
        "headers": [(b"host", b"test")] + [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("test", 1234),
        "server": ("test", 80),
    }
    disconnected = asyncio.Event()
    request_sent = False
    body = bytearray()

    async def receive():
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await disconnected.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        if message["type"] == "http.response.body":
            body.extend(message.get("body", b""))
            if on_body(bytes(body)):
                disconnected.set()

    await asyncio.wait_for(app(scope, receive, send), timeout=5)
    return bytes(body)


@pytest.mark.asyncio
async def test_events_route_replays_after_last_event_id_then_streams_live():
    first = broker.publish("missed one", event="update")
    broker.publish("missed two", event="update")
    live = {}

    def on_body(body: bytes) -> bool:
        if b"missed two" in body and not live:
            live["event"] = broker.publish("live")
        return b"data: live" in body

    body = await read_event_stream({"Last-Event-ID": str(first.event_id)}, on_body)

    retries = []
    events = StreamParser(on_retry=retries.append).feed(body)

    assert retries == [settings.SSE_DEFAULT_RETRY_MS]
    assert [(e.event_type, e.data) for e in events] == [("update", "missed two"), ("message", "live")]
    assert events[0].event_id == str(first.event_id + 1)
    assert events[1].event_id == str(live["event"].event_id)
    assert broker.get_stats().active_subscribers == 0
