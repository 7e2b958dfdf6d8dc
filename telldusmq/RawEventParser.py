"""
telldusmq bridge between telldusd and an MQTT broker

(C) 2025

module RawEventParser

Turns the telldusd event stream into DeviceEvent objects.

A raw event read from the socket looks like

    16:TDRawDeviceEvent95:class:command;protocol:arctech;model:selflearning;house:2;unit:1;group:0;method:turnon;i1s

The body starts at `class` and ends before the 3 byte controller id
trailer (`i1s`). Fields are `key:value` pairs separated by `;`, and an
empty field closes the record.
"""

# std libraries
import logging
from typing import Callable, List, Optional

# external libraries
pass

# personal libraries
from .TelldusEvent import DeviceEvent

LOGGER = logging.getLogger(__name__)

SENTINEL = "TDRawDeviceEvent"
BODY_START = "class"
TRAILER_LENGTH = 3
FIELD_SEPARATOR = ";"
KEY_SEPARATOR = ":"


class RawEventParser:
    """Stateful parser for the raw device event stream.

    The parser accumulates fields into a DeviceEvent and hands the event
    to `on_event` every time an empty field is seen, then starts over with
    a fresh DeviceEvent. Fields of a record that has not been terminated
    yet are carried over to the next buffer.

    Attributes:
        on_event: Callback receiving each completed DeviceEvent.
        event: The DeviceEvent currently being filled.
    """

    def __init__(self, on_event: Callable[[DeviceEvent], None]):
        self.on_event = on_event
        self.event = DeviceEvent()

    def feed(self, data: bytes):
        """Consume one buffer read from the event socket."""
        body = extract_body(data)
        if body is None:
            LOGGER.debug(f"ignoring buffer without raw device event: {data!r}")
            return
        self.consume(body)

    def consume(self, body: str):
        """Consume the field part of a record."""
        for field in body.split(FIELD_SEPARATOR):
            if field:
                self._assign(field)
            else:
                self._emit()

    def reset(self):
        """Drop a partly filled event, e.g. after the connection was lost."""
        self.event = DeviceEvent()

    def _assign(self, field: str):
        key, sep, value = field.partition(KEY_SEPARATOR)
        if not sep:
            LOGGER.debug(f"skipping field without separator: '{field}'")
            return
        if not self.event.set_field(key, value):
            LOGGER.debug(f"skipping unknown field: '{key}'")

    def _emit(self):
        event, self.event = self.event, DeviceEvent()
        self.on_event(event)


def extract_body(data: bytes) -> Optional[str]:
    """Cut the record body out of a raw read buffer.

    Returns None when the buffer is not a raw device event.
    """
    text = data.decode("ascii", errors="replace")
    if SENTINEL not in text:
        return None
    start = text.find(BODY_START)
    if start < 0:
        return None
    return text[start:len(text) - TRAILER_LENGTH]


def parse_record(body: str) -> List[DeviceEvent]:
    """Parse a complete body and return the events it terminates."""
    events = []
    RawEventParser(events.append).consume(body)
    return events
