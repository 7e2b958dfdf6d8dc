"""
telldusmq bridge between telldusd and an MQTT broker

(C) 2025

module TelldusEvent

Value objects passed between the daemon side and the broker side.
DeviceEvent is one parsed raw device event, BrokerCommand is one
request received from the broker.
"""

# std libraries
import json
from dataclasses import dataclass, fields
from typing import Any, Dict

# external libraries
pass

# personal libraries
pass

# addressing scheme for commands that carry a telldusd device id
PROTOCOL_TELLDUS_DEVICE = "telldusdevice"

# wire key -> DeviceEvent attribute
WIRE_KEYS = {
    "class": "event_class",
    "protocol": "protocol",
    "model": "model",
    "code": "code",
    "house": "house",
    "unit": "unit",
    "group": "group",
    "method": "method",
    "id": "id",
    "temp": "temp",
    "humidity": "humidity",
}

# template placeholder -> DeviceEvent attribute
TEMPLATE_NAMES = {
    "Class": "event_class",
    "Protocol": "protocol",
    "Model": "model",
    "Code": "code",
    "House": "house",
    "Unit": "unit",
    "Group": "group",
    "Method": "method",
    "Id": "id",
    "Temp": "temp",
    "Humidity": "humidity",
    "Value": "value",
    "DataType": "data_type",
}


@dataclass
class DeviceEvent:
    """One raw device event reported by telldusd.

    All attributes are kept as text exactly as they came off the wire.
    `value` and `data_type` are never read from the wire, they are filled
    in when the event is published.
    """
    event_class: str = ""
    protocol: str = ""
    model: str = ""
    code: str = "0"
    house: str = "0"
    unit: str = "0"
    group: str = "0"
    method: str = "0"
    id: str = "0"
    temp: str = "0"
    humidity: str = "0"
    value: str = "0"
    data_type: str = ""

    def set_field(self, key: str, value: str) -> bool:
        """Assign a wire field. Returns False for keys we do not know."""
        attr = WIRE_KEYS.get(key)
        if attr is None:
            return False
        setattr(self, attr, value)
        return True

    def template_fields(self) -> Dict[str, str]:
        """Fields keyed by the names used in topic and payload templates."""
        return {name: getattr(self, attr) for name, attr in TEMPLATE_NAMES.items()}


@dataclass
class BrokerCommand:
    """A device command received from the broker."""
    protocol: str = ""
    device_id: int = 0
    house: int = 0
    unit: int = 0
    method: str = ""
    level: int = 0

    @classmethod
    def from_json(cls, payload) -> "BrokerCommand":
        """Decode the JSON body of a generic command message.

        Missing keys keep their zero value, unknown keys are ignored.

        Raises:
            ValueError: payload is not a JSON object or a value has the
                wrong type (json.JSONDecodeError is a ValueError).
        """
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError(f"command must be a JSON object, got {type(data).__name__}")

        command = cls()
        for field in fields(cls):
            if field.name not in data:
                continue
            setattr(command, field.name, _coerce(field.name, field.type, data[field.name]))
        if command.house < 0:
            raise ValueError(f"house must not be negative: {command.house}")
        return command


def _coerce(name: str, kind: Any, value: Any):
    """Check a decoded JSON value against the field type."""
    if kind in (int, "int"):
        # bool is an int subclass, but true/false is not a device id
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"'{name}' must be an integer, got {value!r}")
        return value
    if not isinstance(value, str):
        raise ValueError(f"'{name}' must be a string, got {value!r}")
    return value
