"""
MODULE OVERVIEW:
The handler registry for parsed events.

WHAT IS HAPPENING HERE:
A mapping from event-type name to an ordered list of handlers. Handlers may be plain
functions or coroutine functions; coroutines are awaited before the next handler runs,
so delivery order always equals registration order.
Handler exceptions escape the dispatcher. The EventSource isolates a failing handler by
wrapping every handler it registers.
"""
import inspect
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List

from eventsource.shared.models import Event, EventKind, event_key

EventHandler = Callable[[Event], Awaitable[None] | None]

class EventDispatcher:
    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    def register(self, event_type: EventKind | str, handler: EventHandler) -> None:
        self._handlers[event_key(event_type)].append(handler)

    def handlers(self, event_type: EventKind | str) -> List[EventHandler]:
        return list(self._handlers.get(event_key(event_type), ()))

    async def dispatch(self, event: Event) -> None:
        for handler in self.handlers(event.event_type):
            result = handler(event)
            if inspect.isawaitable(result):
                await result
