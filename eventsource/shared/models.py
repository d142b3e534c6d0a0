"""
MODULE OVERVIEW:
The typed data structures shared by the EventSource client and the demo publisher,
powered by Pydantic v2.

WHAT IS HAPPENING HERE:
`ReadyState` is the three-valued connection lifecycle. `EventKind` names the built-in
event kinds every client understands; any other event type is a free-form string
chosen by the server through the `event:` field. `Event` is what handlers receive.
"""
from datetime import datetime
from enum import Enum, IntEnum
from pydantic import BaseModel, ConfigDict

class ReadyState(IntEnum):
    CONNECTING = 0
    OPEN = 1
    CLOSED = 2

class EventKind(str, Enum):
    OPEN = "open"
    MESSAGE = "message"
    ERROR = "error"

def event_key(event_type: "EventKind | str") -> str:
    """Normalizes a built-in kind or a custom type name to the plain string used as a registry key."""
    if isinstance(event_type, EventKind):
        return event_type.value
    return event_type

# WHAT IS HAPPENING HERE:
# One Event is built per dispatch and discarded once every handler has returned.
# `error` is only populated on synthetic error events and holds the exception
# that ended (or prevented) the connection.
class Event(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    event_type: str = EventKind.MESSAGE.value
    data: str = ""
    event_id: str | None = None
    ready_state: ReadyState = ReadyState.CONNECTING
    error: BaseException | None = None

    @property
    def kind(self) -> EventKind | None:
        """The built-in kind of this event, or None for a custom event type."""
        try:
            return EventKind(self.event_type)
        except ValueError:
            return None

# Demo publisher contracts

class PublishRequest(BaseModel):
    event: str | None = None
    data: str

class PublishedEvent(BaseModel):
    event_id: int
    event: str | None = None
    data: str
    published_at: datetime

class BrokerStats(BaseModel):
    active_subscribers: int
    total_events_published: int
    dropped_events: int
    last_event_id: int | None
    uptime_s: float
    server_time: datetime
