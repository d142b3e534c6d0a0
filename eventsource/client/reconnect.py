"""
MODULE OVERVIEW:
The reconnection policy: decides whether and when a dropped stream is re-opened.

WHAT IS HAPPENING HERE:
After a disconnect the EventSource hands us its session memory. Unless the session was
closed on purpose, we arm one single-shot `call_later` timer for the current reconnect
delay. When it fires we call back into `open()`, which presents the last seen event id.
The delay starts at the session's `retry_ms` (the default, or whatever the server sent
in a `retry:` field). With a backoff multiplier above 1.0 each consecutive failure
stretches it further, capped at `max_delay_ms`; a successful open resets the streak.
"""
import asyncio
import random
from typing import Callable

from loguru import logger

from eventsource.client.session import SessionMemory

class ReconnectPolicy:
    def __init__(self, backoff: float = 1.0, max_delay_ms: int = 32000, jitter: float = 0.0):
        self.backoff = backoff
        self.max_delay_ms = max_delay_ms
        self.jitter = jitter
        self.attempt = 0
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def next_delay_ms(self, retry_ms: int) -> float:
        delay = retry_ms * (self.backoff ** self.attempt)
        # The cap bounds the backoff growth, never the server's own retry value.
        delay = min(delay, max(retry_ms, self.max_delay_ms))
        if self.jitter:
            delay += random.uniform(0, delay * self.jitter)
        return delay

    def schedule(self, session: SessionMemory, reopen: Callable[[], None]) -> float | None:
        """Arms the reconnect timer. Returns the delay in ms, or None when the session is closed."""
        if session.closed:
            return None
        self.cancel()
        delay_ms = self.next_delay_ms(session.retry_ms)
        self.attempt += 1
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay_ms / 1000.0, self._fire, session, reopen)
        logger.warning(
            f"url={session.url} event=reconnect_scheduled attempt={self.attempt} "
            f"delay_ms={delay_ms:.0f} last_event_id={session.last_event_id}"
        )
        return delay_ms

    def _fire(self, session: SessionMemory, reopen: Callable[[], None]) -> None:
        self._handle = None
        if session.closed:
            return
        reopen()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def reset(self) -> None:
        self.attempt = 0
