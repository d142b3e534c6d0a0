"""
MODULE OVERVIEW:
The FastAPI application of the demo publisher.

WHAT IS HAPPENING HERE:
We use a `lifespan` context manager. When Uvicorn starts the server we spawn the clock
publisher as a background task; on shutdown we cancel it and wait for it to exit.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from eventsource.server.broker import broker
from eventsource.server.clock import clock_publisher
from eventsource.server.routes import events
from eventsource.shared.config import settings
from eventsource.shared.models import BrokerStats

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Demo publisher starting, interval_s={settings.SERVER_PUBLISH_INTERVAL_S}")
    task = asyncio.create_task(clock_publisher(broker, settings.SERVER_PUBLISH_INTERVAL_S))

    yield

    logger.info("Demo publisher shutting down. Cancelling clock task...")
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    logger.info("Shutdown complete.")


app = FastAPI(
    title="EventSource demo publisher",
    description="Pushes server-sent events to every connected client",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(events.router, tags=["Events"])

@app.get("/healthz", tags=["Ops"])
async def health_check():
    return {"status": "ok"}

@app.get("/stats", tags=["Ops"], response_model=BrokerStats)
async def get_stats():
    return broker.get_stats()
