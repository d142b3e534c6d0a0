"""
CLI entrypoint for the EventSource client and its demo publisher.
"""
import asyncio
import sys
from datetime import datetime
from typing import List, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape

from eventsource.client.event_source import EventSource
from eventsource.shared.config import settings
from eventsource.shared.models import Event

app = typer.Typer(help="EventSource client and demo publisher")
console = Console()

def configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL.upper())

def default_base_url() -> str:
    return f"http://127.0.0.1:{settings.PORT}"

def render_event(event: Event) -> str:
    ts = datetime.now().strftime("%H:%M:%S")
    event_id = f" id={escape(event.event_id)}" if event.event_id is not None else ""
    return f"[cyan]{ts}[/] [magenta]{escape(event.event_type)}[/]{event_id} [green]{escape(event.data)}[/]"

@app.command()
def server():
    """Start the demo publisher using Uvicorn."""
    import uvicorn
    configure_logging()
    typer.echo(f"Starting demo publisher on port {settings.PORT}...")
    uvicorn.run("eventsource.server.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())

@app.command()
def listen(
    url: Optional[str] = typer.Argument(None, help="Event stream URL (defaults to the local demo publisher)"),
    event: Optional[List[str]] = typer.Option(None, "--event", "-e", help="Named event types to print besides 'message'"),
    duration: float = typer.Option(0.0, help="Seconds to listen; 0 listens until interrupted"),
):
    """Connect to an event stream and print every event received."""
    configure_logging()
    target = url or f"{default_base_url()}/events"
    try:
        asyncio.run(_listen(target, event or [], duration))
    except KeyboardInterrupt:
        pass

async def _listen(url: str, event_types: List[str], duration: float) -> None:
    def show(event: Event) -> None:
        console.print(render_event(event))

    def show_open(event: Event) -> None:
        console.print(f"[bold green]connected[/] {escape(url)}")

    def show_error(event: Event) -> None:
        console.print(f"[bold red]{event.ready_state.name}[/] {escape(str(event.error))}")

    async with EventSource(url) as source:
        source.on_open(show_open)
        source.on_error(show_error)
        source.on_message(show)
        for name in event_types:
            source.add_event_listener(name, show)

        if duration > 0:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()

    console.print(
        f"events={source.stats['events_received']} reconnects={source.stats['reconnect_count']} "
        f"last_event_id={source.last_event_id}"
    )

@app.command()
def publish(
    data: str = typer.Argument(..., help="Event payload"),
    event: Optional[str] = typer.Option(None, help="Event type; omitted means 'message'"),
    url: Optional[str] = typer.Option(None, help="Publisher base URL"),
):
    """Publish one event through the demo publisher."""
    import httpx
    resp = httpx.post(f"{url or default_base_url()}/publish", json={"event": event, "data": data})
    resp.raise_for_status()
    typer.echo(resp.json())

@app.command()
def stats(url: Optional[str] = typer.Option(None, help="Publisher base URL")):
    """Query the demo publisher for live subscriber stats."""
    import httpx
    resp = httpx.get(f"{url or default_base_url()}/stats")
    typer.echo(resp.json())

if __name__ == "__main__":
    app()
