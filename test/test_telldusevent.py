"""
Test suite for the DeviceEvent and BrokerCommand value objects.

Tests cover:
- DeviceEvent defaults and wire field assignment
- Template field names
- BrokerCommand JSON decoding and type checks
"""

import json
import pytest
from telldusmq.TelldusEvent import (
    DeviceEvent,
    BrokerCommand,
    WIRE_KEYS,
    TEMPLATE_NAMES,
    PROTOCOL_TELLDUS_DEVICE,
)


class TestDeviceEvent:
    """Tests for DeviceEvent."""

    def test_defaults(self):
        """Class, protocol and model default empty, the rest to "0"."""
        event = DeviceEvent()

        assert event.event_class == ""
        assert event.protocol == ""
        assert event.model == ""
        for attr in ("code", "house", "unit", "group", "method", "id",
                     "temp", "humidity", "value"):
            assert getattr(event, attr) == "0"
        assert event.data_type == ""

    def test_set_field_known_keys(self):
        """Every wire key lands on its attribute."""
        event = DeviceEvent()
        for key, attr in WIRE_KEYS.items():
            assert event.set_field(key, f"v-{key}") is True
            assert getattr(event, attr) == f"v-{key}"

    def test_set_field_class_maps_to_event_class(self):
        event = DeviceEvent()
        event.set_field("class", "sensor")
        assert event.event_class == "sensor"

    def test_set_field_unknown_key(self):
        """Unknown keys are reported and change nothing."""
        event = DeviceEvent()
        assert event.set_field("controllerid", "1") is False
        assert event == DeviceEvent()

    def test_value_and_datatype_not_wire_fields(self):
        """value and dataType can only be derived, never read."""
        event = DeviceEvent()
        assert event.set_field("value", "9") is False
        assert event.set_field("dataType", "temp") is False
        assert event.value == "0"
        assert event.data_type == ""

    def test_template_fields(self):
        event = DeviceEvent(event_class="command", id="7", data_type="temp")
        fields = event.template_fields()

        assert set(fields) == set(TEMPLATE_NAMES)
        assert fields["Class"] == "command"
        assert fields["Id"] == "7"
        assert fields["DataType"] == "temp"


class TestBrokerCommandFromJson:
    """Tests for BrokerCommand.from_json."""

    def test_full_command(self):
        payload = json.dumps({
            "protocol": "telldusdevice",
            "device_id": 3,
            "house": 12,
            "unit": 2,
            "method": "dim",
            "level": 128,
        })
        command = BrokerCommand.from_json(payload)

        assert command == BrokerCommand("telldusdevice", 3, 12, 2, "dim", 128)

    def test_bytes_payload(self):
        command = BrokerCommand.from_json(b'{"protocol": "telldusdevice", "device_id": 1, "method": "turnon"}')

        assert command.protocol == PROTOCOL_TELLDUS_DEVICE
        assert command.device_id == 1
        assert command.method == "turnon"

    def test_missing_keys_are_zero(self):
        command = BrokerCommand.from_json('{"method": "learn"}')

        assert command.protocol == ""
        assert command.device_id == 0
        assert command.house == 0
        assert command.unit == 0
        assert command.level == 0

    def test_unknown_keys_ignored(self):
        command = BrokerCommand.from_json('{"method": "learn", "extra": true}')
        assert command.method == "learn"

    @pytest.mark.parametrize("payload", [
        "not json",
        "",
        "[1, 2]",
        '"turnon"',
        '{"device_id": "3"}',
        '{"device_id": true}',
        '{"device_id": 1.5}',
        '{"method": 5}',
        '{"house": -1}',
        b'\xff\xfe',
    ])
    def test_invalid_payload(self, payload):
        """Malformed payloads raise ValueError."""
        with pytest.raises(ValueError):
            BrokerCommand.from_json(payload)
