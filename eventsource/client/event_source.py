"""
MODULE OVERVIEW:
The EventSource client: a long-lived `text/event-stream` connection with automatic resume.

WHAT IS HAPPENING HERE:
We use HTTPX `stream()` to keep the response body open and feed every chunk to the
StreamParser. Each completed event updates the resume point (`Last-Event-ID`) and is
routed to the handlers registered for its type.
When the stream cannot be opened, or ends after it was open, we dispatch a synthetic
`error` event and hand our session memory to the ReconnectPolicy, which re-runs `open()`
after the reconnect delay. Only an explicit `close()` (or a 204 from the server) stops
that cycle for good.

Everything runs on the asyncio event loop inside one connection task, so the parser
buffer, the session memory and the ready state are never touched concurrently.
A slow handler therefore holds up delivery of the events behind it.
"""
import asyncio
import inspect

import httpx
from loguru import logger

from eventsource.client.dispatcher import EventDispatcher, EventHandler
from eventsource.client.parser import StreamParser
from eventsource.client.reconnect import ReconnectPolicy
from eventsource.client.session import SessionMemory
from eventsource.shared.client_utils import make_client_stats, utc_now_iso
from eventsource.shared.config import Settings, settings as default_settings
from eventsource.shared.errors import (
    EventSourceClosedError,
    EventSourceError,
    EventSourceHTTPError,
    InvalidContentTypeError,
    StreamEndedError,
)
from eventsource.shared.models import Event, EventKind, ReadyState

EVENT_STREAM_CONTENT_TYPE = "text/event-stream"

class EventSource:
    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        settings: Settings | None = None,
        autostart: bool = True,
    ):
        self.settings = settings or default_settings
        self._session = SessionMemory(url=url, retry_ms=self.settings.SSE_DEFAULT_RETRY_MS)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.SSE_READ_TIMEOUT_S, connect=self.settings.SSE_CONNECT_TIMEOUT_S)
        )
        self._extra_headers = dict(headers or {})

        self._dispatcher = EventDispatcher()
        self._parser = StreamParser(on_retry=self._on_retry)
        self._policy = ReconnectPolicy(
            backoff=self.settings.SSE_RECONNECT_BACKOFF,
            max_delay_ms=self.settings.SSE_RECONNECT_MAX_DELAY_MS,
            jitter=self.settings.SSE_RECONNECT_JITTER,
        )
        self._ready_state = ReadyState.CLOSED
        self._task: asyncio.Task | None = None
        self._release_task: asyncio.Task | None = None

        self.stats = make_client_stats()

        if autostart:
            self.open()

    # ==========================
    # SESSION (read-only views)
    # ==========================
    @property
    def url(self) -> str:
        return self._session.url

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    @property
    def last_event_id(self) -> str | None:
        return self._session.last_event_id

    @property
    def retry_ms(self) -> int:
        return self._session.retry_ms

    @property
    def reconnect_pending(self) -> bool:
        return self._policy.pending

    # ==========================
    # HANDLER REGISTRATION
    # ==========================
    def on_open(self, handler: EventHandler) -> None:
        self.add_event_listener(EventKind.OPEN, handler)

    def on_message(self, handler: EventHandler) -> None:
        self.add_event_listener(EventKind.MESSAGE, handler)

    def on_error(self, handler: EventHandler) -> None:
        self.add_event_listener(EventKind.ERROR, handler)

    def add_event_listener(self, event_type: EventKind | str, handler: EventHandler) -> None:
        self._dispatcher.register(event_type, self._isolate(handler))

    def _isolate(self, handler: EventHandler) -> EventHandler:
        """Wraps a handler so its failure is logged instead of cutting off the handlers after it."""
        name = getattr(handler, "__qualname__", repr(handler))

        async def isolated(event: Event) -> None:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self.stats["handler_errors"] += 1
                logger.exception(f"url={self.url} event=handler_error type={event.event_type} handler={name}")

        return isolated

    # ==========================
    # LIFECYCLE
    # ==========================
    def open(self) -> None:
        """
        Starts a connection attempt unless one is already live or connecting.
        Must be called from within a running event loop.
        """
        if self._session.closed:
            raise EventSourceClosedError(f"EventSource for {self.url} was closed; create a new one")
        if self._task is not None and not self._task.done():
            return
        self._policy.cancel()
        self._set_state(ReadyState.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"eventsource:{self.url}")
        self._task.add_done_callback(self._on_task_done)

    def close(self) -> None:
        """
        Stops the stream for good: no pending or future reconnect survives this call.
        An HTTP client created by this EventSource is released in the background;
        await aclose() to wait for that release.
        """
        self._session.closed = True
        self._policy.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._ready_state is not ReadyState.CLOSED:
            self._set_state(ReadyState.CLOSED)
            logger.info(f"url={self.url} event=close reason=requested")
        if self._owns_client and self._release_task is None:
            self._release_task = asyncio.get_running_loop().create_task(self._client.aclose())

    async def aclose(self) -> None:
        """close(), then wait for the connection task to unwind and release the HTTP client."""
        self.close()
        task = self._task
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)
        if self._release_task is not None:
            await self._release_task

    async def __aenter__(self) -> "EventSource":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ==========================
    # CONNECTION TASK
    # ==========================
    def _request_headers(self) -> dict[str, str]:
        headers = {
            **self._extra_headers,
            "Accept": EVENT_STREAM_CONTENT_TYPE,
            "Cache-Control": "no-cache",
        }
        if self._session.last_event_id:
            headers["Last-Event-ID"] = self._session.last_event_id
        return headers

    async def _run(self) -> None:
        self._parser.reset()
        logger.debug(f"url={self.url} event=connect last_event_id={self._session.last_event_id}")
        try:
            async with self._client.stream("GET", self.url, headers=self._request_headers()) as response:
                await self._check_response(response)
                await self._on_open(response)
                async for chunk in response.aiter_bytes():
                    await self._on_chunk(chunk)
                    if self._session.closed:
                        return
            raise StreamEndedError(f"server closed the stream at {self.url}")
        except (httpx.HTTPError, OSError, EventSourceError) as e:
            await self._on_failure(e)

    async def _check_response(self, response: httpx.Response) -> None:
        if response.status_code == 204 or not response.is_success:
            body = (await response.aread()).decode("utf-8", errors="replace")
            raise EventSourceHTTPError(response.status_code, response.reason_phrase, body or None)
        content_type = response.headers.get("content-type", "").split(";", 1)[0].strip().lower()
        if content_type != EVENT_STREAM_CONTENT_TYPE:
            raise InvalidContentTypeError(content_type or None)

    async def _on_open(self, response: httpx.Response) -> None:
        self._set_state(ReadyState.OPEN)
        self._policy.reset()
        self.stats["connected_at"] = utc_now_iso()
        logger.info(f"url={self.url} event=open status={response.status_code}")
        await self._dispatcher.dispatch(Event(event_type=EventKind.OPEN.value, ready_state=self._ready_state))

    async def _on_chunk(self, chunk: bytes) -> None:
        self.stats["bytes_received"] += len(chunk)
        for event in self._parser.feed(chunk):
            if self._session.closed:
                return
            if event.event_id is not None:
                # An empty id clears the resume point.
                self._session.last_event_id = event.event_id or None
            self.stats["events_received"] += 1
            self.stats["last_event_at"] = utc_now_iso()
            await self._dispatcher.dispatch(event.model_copy(update={"ready_state": self._ready_state}))

    def _on_retry(self, retry_ms: int) -> None:
        retry_ms = min(retry_ms, self.settings.SSE_MAX_RETRY_MS)
        self._session.retry_ms = retry_ms
        logger.debug(f"url={self.url} event=retry retry_ms={retry_ms}")

    async def _on_failure(self, error: BaseException) -> None:
        if isinstance(error, EventSourceHTTPError) and error.is_stop_request:
            self._session.closed = True
        if self._session.closed or isinstance(error, (EventSourceHTTPError, InvalidContentTypeError)):
            self._set_state(ReadyState.CLOSED)
        else:
            self._set_state(ReadyState.CONNECTING)
        logger.warning(f"url={self.url} event=error state={self._ready_state.name} reason='{error}'")

        await self._dispatcher.dispatch(
            Event(event_type=EventKind.ERROR.value, ready_state=self._ready_state, error=error)
        )
        if self._policy.schedule(self._session, self.open) is not None:
            self.stats["reconnect_count"] += 1

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._set_state(ReadyState.CLOSED)
            logger.opt(exception=error).error(f"url={self.url} event=crash reason='{error}'")

    def _set_state(self, state: ReadyState) -> None:
        if state is not self._ready_state:
            logger.debug(f"url={self.url} event=state from={self._ready_state.name} to={state.name}")
            self._ready_state = state
