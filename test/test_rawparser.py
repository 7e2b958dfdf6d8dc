"""
Test suite for RawEventParser.

Tests cover:
- Body extraction (sentinel, class offset, trailer)
- Field assignment and record termination
- Malformed fields
- Last-write-wins on duplicate keys
- State carried between buffers
"""

import pytest
from unittest.mock import Mock
from telldusmq.RawEventParser import (
    RawEventParser,
    extract_body,
    parse_record,
    SENTINEL,
)
from telldusmq.TelldusEvent import DeviceEvent


def raw_buffer(body: str, controller: int = 1) -> bytes:
    """Frame a body the way telldusd does."""
    return f"16:{SENTINEL}{len(body)}:{body}i{controller}s".encode("ascii")


COMMAND_BODY = "class:command;protocol:arctech;model:selflearning;house:2345;unit:1;group:0;method:turnon;"
SENSOR_BODY = "class:sensor;protocol:mandolyn;id:11;model:temperaturehumidity;humidity:40;temp:21.5;"


class TestExtractBody:
    """Tests for extract_body."""

    def test_extracts_from_class_to_trailer(self):
        assert extract_body(raw_buffer(COMMAND_BODY)) == COMMAND_BODY

    def test_without_sentinel(self):
        assert extract_body(b"13:TDDeviceEventi1si1s") is None

    def test_without_class(self):
        assert extract_body(f"16:{SENTINEL}3:abci1s".encode()) is None

    def test_non_ascii_bytes_do_not_raise(self):
        body = extract_body(f"16:{SENTINEL}5:class:x\xff;i1s".encode("latin-1"))
        assert body is not None
        assert body.startswith("class:x")


class TestRawEventParser:
    """Tests for the stateful parser."""

    @pytest.fixture
    def on_event(self):
        return Mock()

    @pytest.fixture
    def parser(self, on_event):
        return RawEventParser(on_event)

    def test_command_event(self, parser, on_event):
        parser.feed(raw_buffer(COMMAND_BODY))

        on_event.assert_called_once()
        event = on_event.call_args[0][0]
        assert event.event_class == "command"
        assert event.protocol == "arctech"
        assert event.model == "selflearning"
        assert event.house == "2345"
        assert event.unit == "1"
        assert event.group == "0"
        assert event.method == "turnon"
        assert event.id == "0"

    def test_sensor_event(self, parser, on_event):
        parser.feed(raw_buffer(SENSOR_BODY))

        event = on_event.call_args[0][0]
        assert event.event_class == "sensor"
        assert event.id == "11"
        assert event.temp == "21.5"
        assert event.humidity == "40"
        # derived during emission only
        assert event.value == "0"
        assert event.data_type == ""

    def test_ignores_buffer_without_sentinel(self, parser, on_event):
        parser.feed(b"13:TDDeviceEventi1si2si1s")
        on_event.assert_not_called()

    def test_unknown_fields_ignored(self, parser, on_event):
        parser.consume("class:command;foo:bar;method:learn;")

        event = on_event.call_args[0][0]
        assert event.method == "learn"

    def test_field_without_separator_skipped(self, parser, on_event):
        parser.consume("class:command;garbage;method:turnoff;")

        event = on_event.call_args[0][0]
        assert event.event_class == "command"
        assert event.method == "turnoff"

    def test_extra_colons_stay_in_value(self, parser, on_event):
        parser.consume("class:command;code:a:b:c;")

        assert on_event.call_args[0][0].code == "a:b:c"

    def test_empty_value(self, parser, on_event):
        parser.consume("class:command;house:;")

        assert on_event.call_args[0][0].house == ""

    def test_values_not_validated(self, parser, on_event):
        parser.consume("class:command;house:not-a-number;unit:x;")

        event = on_event.call_args[0][0]
        assert event.house == "not-a-number"
        assert event.unit == "x"

    def test_last_write_wins(self, parser, on_event):
        parser.consume("class:command;method:turnon;house:1;method:turnoff;house:2;")

        event = on_event.call_args[0][0]
        assert event.method == "turnoff"
        assert event.house == "2"

    def test_double_separator_terminates_record(self, parser, on_event):
        parser.consume("class:command;method:turnon;;class:sensor;temp:20;")

        assert on_event.call_count == 2
        first, second = (c[0][0] for c in on_event.call_args_list)
        assert first.event_class == "command"
        assert second.event_class == "sensor"
        # the second event starts from scratch
        assert second.method == "0"

    def test_fresh_event_per_record(self, parser, on_event):
        parser.feed(raw_buffer(COMMAND_BODY))
        parser.feed(raw_buffer(COMMAND_BODY))

        first, second = (c[0][0] for c in on_event.call_args_list)
        assert first is not second
        assert first == second

    def test_unterminated_record_carries_over(self, parser, on_event):
        parser.consume("class:command;house:5")
        on_event.assert_not_called()

        parser.consume(";method:turnon;")
        event = on_event.call_args[0][0]
        assert event.house == "5"
        assert event.method == "turnon"

    def test_reset_drops_partial_event(self, parser, on_event):
        parser.consume("class:command;house:5")
        parser.reset()
        parser.consume("class:sensor;")

        event = on_event.call_args[0][0]
        assert event.event_class == "sensor"
        assert event.house == "0"

    def test_records_emitted_in_order(self, parser, on_event):
        for i in range(5):
            parser.consume(f"class:command;id:{i};")

        assert [c[0][0].id for c in on_event.call_args_list] == ["0", "1", "2", "3", "4"]

    def test_callback_errors_propagate(self, parser, on_event):
        on_event.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            parser.consume("class:command;")


class TestParseRecord:
    """Tests for parse_record."""

    def test_returns_terminated_events(self):
        events = parse_record("class:command;method:turnon;;class:sensor;temp:1;")
        assert [e.event_class for e in events] == ["command", "sensor"]

    def test_unterminated_record_is_not_returned(self):
        assert parse_record("class:command;method:turnon") == []

    def test_matches_manual_event(self):
        events = parse_record("class:command;protocol:arctech;method:dim;")
        assert events == [DeviceEvent(event_class="command", protocol="arctech", method="dim")]
