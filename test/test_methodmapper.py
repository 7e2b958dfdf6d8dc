"""
Test suite for MethodMapper.

Tests cover:
- Outbound aliasing of turnon/turnoff
- Inbound reverse mapping and its toggle
- Empty aliases
- learn/dim never aliased
- Construction from configuration
"""

import pytest
from telldusmq.MethodMapper import MethodMapper
from telldusmq.Config import Config


class TestOutbound:
    """Tests for device -> broker mapping."""

    def test_turnon_alias(self):
        assert MethodMapper("ON", "OFF").outbound("turnon") == "ON"

    def test_turnoff_alias(self):
        assert MethodMapper("ON", "OFF").outbound("turnoff") == "OFF"

    def test_empty_alias_keeps_canonical(self):
        mapper = MethodMapper("", "")
        assert mapper.outbound("turnon") == "turnon"
        assert mapper.outbound("turnoff") == "turnoff"

    def test_only_one_alias(self):
        mapper = MethodMapper("ON", "")
        assert mapper.outbound("turnon") == "ON"
        assert mapper.outbound("turnoff") == "turnoff"

    @pytest.mark.parametrize("method", ["learn", "dim", "bell", "0", "TURNON", "turnon "])
    def test_other_methods_unchanged(self, method):
        assert MethodMapper("ON", "OFF").outbound(method) == method

    def test_outbound_ignores_reverse_toggle(self):
        assert MethodMapper("ON", "OFF", reverse_on_incoming=False).outbound("turnon") == "ON"


class TestInbound:
    """Tests for broker -> device mapping."""

    def test_reverse_enabled(self):
        mapper = MethodMapper("ON", "OFF", reverse_on_incoming=True)
        assert mapper.inbound("ON") == "turnon"
        assert mapper.inbound("OFF") == "turnoff"

    def test_reverse_disabled(self):
        mapper = MethodMapper("ON", "OFF", reverse_on_incoming=False)
        assert mapper.inbound("ON") == "ON"
        assert mapper.inbound("OFF") == "OFF"

    def test_canonical_passes_through(self):
        mapper = MethodMapper("ON", "OFF", reverse_on_incoming=True)
        assert mapper.inbound("turnon") == "turnon"
        assert mapper.inbound("dim") == "dim"
        assert mapper.inbound("learn") == "learn"

    def test_empty_alias_never_matches(self):
        mapper = MethodMapper("", "", reverse_on_incoming=True)
        assert mapper.inbound("") == ""

    def test_exact_match_only(self):
        mapper = MethodMapper("ON", "OFF", reverse_on_incoming=True)
        assert mapper.inbound("on") == "on"

    def test_none_alias_treated_as_empty(self):
        mapper = MethodMapper(None, None, reverse_on_incoming=True)
        assert mapper.turn_on_alias == ""
        assert mapper.outbound("turnon") == "turnon"


class TestFromConfig:
    """Tests for MethodMapper.from_config."""

    def test_reads_config(self):
        config = Config({"Tellstick": {
            "MapTurnOnTo": "ON",
            "MapTurnOffTo": "OFF",
            "ReverseMappingOnIncoming": True,
        }})
        mapper = MethodMapper.from_config(config)

        assert mapper.turn_on_alias == "ON"
        assert mapper.turn_off_alias == "OFF"
        assert mapper.reverse_on_incoming is True

    def test_defaults(self):
        mapper = MethodMapper.from_config(Config())

        assert mapper.turn_on_alias == ""
        assert mapper.turn_off_alias == ""
        assert mapper.reverse_on_incoming is False
