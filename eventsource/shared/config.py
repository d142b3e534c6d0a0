"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.
Both the EventSource client and the demo publisher read their timings from here.

WHAT IS HAPPENING HERE:
The reconnect delay, backoff and transport timeouts are declared once instead of
being hardcoded inside the connection loop. Every value can be overridden through
an environment variable or a `.env` file, e.g. `SSE_DEFAULT_RETRY_MS=500`.
"""
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Client reconnection
    SSE_DEFAULT_RETRY_MS: int = 3000
    SSE_RECONNECT_BACKOFF: float = 1.0
    SSE_RECONNECT_MAX_DELAY_MS: int = 32000
    SSE_RECONNECT_JITTER: float = 0.0
    # Ceiling for a delay sent by the server in a `retry:` field
    SSE_MAX_RETRY_MS: int = 3_600_000

    # Client transport. The read timeout must exceed the server heartbeat interval.
    SSE_CONNECT_TIMEOUT_S: float = 10.0
    SSE_READ_TIMEOUT_S: float = 60.0

    # Demo publisher
    SERVER_PUBLISH_INTERVAL_S: float = 1.0
    SERVER_HEARTBEAT_INTERVAL_S: float = 15.0
    SERVER_REPLAY_BUFFER: int = 200

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()
