from dataclasses import dataclass

@dataclass
class SessionMemory:
    """
    Per-client state consulted on every connection attempt.
    Owned and mutated only by the EventSource that created it.
    """
    url: str
    retry_ms: int
    last_event_id: str | None = None
    closed: bool = False
