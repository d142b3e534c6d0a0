"""
MODULE OVERVIEW:
The background traffic source of the demo publisher.

WHAT IS HAPPENING HERE:
A single infinite loop that publishes "the time is ..." on a fixed interval, so a
freshly started server always has a steady stream for clients to consume.
"""

import asyncio
from datetime import datetime, timezone

from eventsource.server.broker import EventBroker

def time_message() -> str:
    return f"the time is {datetime.now(timezone.utc).isoformat()}"

async def clock_publisher(broker: EventBroker, interval_s: float):
    while True:
        await asyncio.sleep(interval_s)
        broker.publish(time_message())
