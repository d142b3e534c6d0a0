from dataclasses import dataclass


class EventSourceError(RuntimeError):
    """Base error for the EventSource client."""


@dataclass
class EventSourceHTTPError(EventSourceError):
    """
    The server answered the stream request with a non-success status.

    A 204 No Content answer means the server wants the client to stop; every
    other status is treated as a retryable failure.
    """
    status_code: int
    reason: str = ""
    body: str | None = None

    def __str__(self) -> str:
        parts = [f"EventSourceHTTPError(status_code={self.status_code}"]
        if self.reason:
            parts.append(f", reason={self.reason!r}")
        if self.body:
            parts.append(f", body={len(self.body)} chars")
        parts.append(")")
        return "".join(parts)

    @property
    def is_stop_request(self) -> bool:
        return self.status_code == 204


class InvalidContentTypeError(EventSourceError):
    """The response is not a text/event-stream body."""

    def __init__(self, content_type: str | None):
        super().__init__(f"expected text/event-stream, got {content_type!r}")
        self.content_type = content_type


class StreamEndedError(EventSourceError):
    """The server closed the response body of an open stream."""


class EventSourceClosedError(EventSourceError):
    """open() was called on a client that was explicitly closed."""
