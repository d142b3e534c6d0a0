"""
MODULE OVERVIEW:
The incremental `text/event-stream` parser.

WHAT IS HAPPENING HERE:
The transport hands us bytes in whatever chunks the network produced. A single line,
or a whole event, can be split across any number of chunks, so the parser keeps three
pieces of state between calls:
  1. an incremental UTF-8 decoder (a multi-byte character may be split),
  2. the text of the line that has not been terminated yet,
  3. the fields of the event under construction.
A blank line dispatches the accumulated event. Nothing here ever raises on bad input:
malformed lines are skipped and parsing continues.
"""
import codecs
import re
from typing import Callable

from eventsource.shared.models import Event, EventKind

_LINE_END = re.compile(r"\r\n|\r|\n")
# Longer retry values are skipped as malformed; int() refuses very long digit strings.
_MAX_RETRY_DIGITS = 10


class StreamParser:
    def __init__(self, on_retry: Callable[[int], None] | None = None):
        self.on_retry = on_retry
        self.reset()

    def reset(self) -> None:
        """Drops every partial line and partial event. Called before each new connection."""
        self._decoder = codecs.getincrementaldecoder("utf-8-sig")(errors="replace")
        self._line_buffer = ""
        self._skip_lf = False
        self._reset_event()

    def _reset_event(self) -> None:
        self._event_id: str | None = None
        self._event_type: str | None = None
        self._data_lines: list[str] = []
        self._has_fields = False

    def feed(self, chunk: bytes) -> list[Event]:
        """Consumes one chunk of the response body and returns every event it completed."""
        text = self._decoder.decode(chunk)
        events: list[Event] = []
        for line in self._split_lines(text):
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def _split_lines(self, text: str) -> list[str]:
        # A chunk that ended on "\r" may be followed by the "\n" of the same CRLF.
        if self._skip_lf and text:
            if text[0] == "\n":
                text = text[1:]
            self._skip_lf = False
        if not text:
            return []

        buffer = self._line_buffer + text
        lines = []
        pos = 0
        for match in _LINE_END.finditer(buffer):
            lines.append(buffer[pos:match.start()])
            pos = match.end()
        self._line_buffer = buffer[pos:]
        self._skip_lf = buffer.endswith("\r")
        return lines

    def _process_line(self, line: str) -> Event | None:
        if line == "":
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data_lines.append(value)
            self._has_fields = True
        elif name == "event":
            self._event_type = value
            self._has_fields = True
        elif name == "id":
            if "\0" not in value:
                self._event_id = value
                self._has_fields = True
        elif name == "retry":
            if (
                value.isascii() and value.isdigit()
                and len(value) <= _MAX_RETRY_DIGITS
                and self.on_retry is not None
            ):
                self.on_retry(int(value))
        return None

    def _dispatch(self) -> Event | None:
        if not self._has_fields:
            return None
        event = Event(
            event_type=self._event_type or EventKind.MESSAGE.value,
            data="\n".join(self._data_lines),
            event_id=self._event_id,
        )
        self._reset_event()
        return event
