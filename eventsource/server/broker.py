"""
MODULE OVERVIEW:
The demo publisher's subscriber registry and fan-out.

WHAT IS HAPPENING HERE:
Every open `/events` stream owns a bounded asyncio.Queue held here. `publish()` stamps
the event with the next numeric id, keeps it in a rolling replay buffer and pushes it to
every queue without blocking. A client that reconnects with `Last-Event-ID: N` gets the
buffered events after N before it resumes live delivery, which is what makes the
client-side resume observable end to end.
"""

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Dict, List

from loguru import logger

from eventsource.shared.config import settings
from eventsource.shared.models import BrokerStats, PublishedEvent

class EventBroker:
    def __init__(self, replay_buffer: int = 200, queue_size: int = 100):
        self.queue_size = queue_size
        self.subscribers: Dict[str, asyncio.Queue[PublishedEvent]] = {}
        self.recent_events: deque[PublishedEvent] = deque(maxlen=replay_buffer)
        self.last_event_id: int | None = None
        self.total_events_published = 0
        self.dropped_events = 0
        self.startup_time = datetime.now(timezone.utc)

    # ==========================
    # SUBSCRIPTIONS
    # ==========================
    def subscribe(self, subscriber_id: str, last_event_id: str | None = None) -> tuple[asyncio.Queue[PublishedEvent], List[PublishedEvent]]:
        """Registers a queue and returns it with the backlog to replay, taken in the same step."""
        queue: asyncio.Queue[PublishedEvent] = asyncio.Queue(maxsize=self.queue_size)
        self.subscribers[subscriber_id] = queue
        backlog = self.replay_after(last_event_id)
        logger.info(
            f"subscriber_id={subscriber_id} event=subscribe last_event_id={last_event_id} replay={len(backlog)}"
        )
        return queue, backlog

    def unsubscribe(self, subscriber_id: str):
        if subscriber_id in self.subscribers:
            del self.subscribers[subscriber_id]
            logger.info(f"subscriber_id={subscriber_id} event=unsubscribe reason=cleanup")

    def replay_after(self, last_event_id: str | None) -> List[PublishedEvent]:
        if not last_event_id:
            return []
        try:
            after = int(last_event_id)
        except ValueError:
            logger.warning(f"event=replay_skipped reason=non_numeric_id last_event_id={last_event_id!r}")
            return []
        return [e for e in self.recent_events if e.event_id > after]

    # ==========================
    # FAN-OUT
    # ==========================
    def publish(self, data: str, event: str | None = None) -> PublishedEvent:
        event_id = (self.last_event_id or 0) + 1
        published = PublishedEvent(
            event_id=event_id,
            event=event,
            data=data,
            published_at=datetime.now(timezone.utc),
        )
        self.last_event_id = event_id
        self.total_events_published += 1
        self.recent_events.append(published)

        for subscriber_id, queue in self.subscribers.items():
            try:
                # put_nowait keeps one slow subscriber from blocking the others
                queue.put_nowait(published)
            except asyncio.QueueFull:
                self.dropped_events += 1
                logger.warning(f"subscriber_id={subscriber_id} event=dropped reason=queue_full event_id={event_id}")
        return published

    # ==========================
    # METRICS
    # ==========================
    def get_stats(self) -> BrokerStats:
        return BrokerStats(
            active_subscribers=len(self.subscribers),
            total_events_published=self.total_events_published,
            dropped_events=self.dropped_events,
            last_event_id=self.last_event_id,
            uptime_s=(datetime.now(timezone.utc) - self.startup_time).total_seconds(),
            server_time=datetime.now(timezone.utc)
        )

# Global singleton instance
broker = EventBroker(replay_buffer=settings.SERVER_REPLAY_BUFFER)
