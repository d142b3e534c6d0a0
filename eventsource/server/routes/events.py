"""
MODULE OVERVIEW:
The `text/event-stream` endpoint and the publish endpoint of the demo publisher.

WHAT IS HAPPENING HERE:
`/events` subscribes a queue on the broker, replays anything after the client's
`Last-Event-ID`, then streams live events through sse-starlette. The first frame carries
only a `retry:` hint so clients learn the server's reconnect delay. sse-starlette's ping
keeps idle connections alive with comment lines, which clients discard.
"""
from uuid import uuid4

from fastapi import APIRouter, Header
from sse_starlette.sse import EventSourceResponse, ServerSentEvent

from eventsource.server.broker import broker
from eventsource.shared.config import settings
from eventsource.shared.models import PublishedEvent, PublishRequest

router = APIRouter()

def to_server_sent_event(published: PublishedEvent) -> ServerSentEvent:
    return ServerSentEvent(data=published.data, event=published.event, id=str(published.event_id))

@router.get("/events")
async def events_endpoint(last_event_id: str | None = Header(None)):
    subscriber_id = f"sub-{uuid4().hex[:6]}"
    queue, backlog = broker.subscribe(subscriber_id, last_event_id)

    async def event_publisher():
        try:
            yield ServerSentEvent(comment="connected", retry=settings.SSE_DEFAULT_RETRY_MS)
            for published in backlog:
                yield to_server_sent_event(published)
            while True:
                yield to_server_sent_event(await queue.get())
        finally:
            broker.unsubscribe(subscriber_id)

    return EventSourceResponse(event_publisher(), ping=settings.SERVER_HEARTBEAT_INTERVAL_S)

@router.post("/publish", response_model=PublishedEvent)
async def publish_endpoint(body: PublishRequest):
    return broker.publish(body.data, event=body.event)
