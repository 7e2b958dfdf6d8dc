"""
telldusmq bridge between telldusd and an MQTT broker

(C) 2025

module MethodMapper

Maps the canonical on/off vocabulary of telldusd to user chosen aliases,
e.g. `turnon` <-> `ON`, so that broker side consumers can use their own
words. learn and dim are never aliased.
"""

# std libraries
pass

# external libraries
pass

# personal libraries
from .TelldusCore import TURNON, TURNOFF


class MethodMapper:
    """Bidirectional on/off alias lookup.

    Attributes:
        turn_on_alias (str): Replacement for `turnon`, empty to disable.
        turn_off_alias (str): Replacement for `turnoff`, empty to disable.
        reverse_on_incoming (bool): Whether `inbound` maps aliases back.
    """

    def __init__(self, turn_on_alias: str = "", turn_off_alias: str = "",
                 reverse_on_incoming: bool = False):
        self.turn_on_alias = turn_on_alias or ""
        self.turn_off_alias = turn_off_alias or ""
        self.reverse_on_incoming = reverse_on_incoming

    @classmethod
    def from_config(cls, config) -> "MethodMapper":
        return cls(
            config.get_str("Tellstick.MapTurnOnTo"),
            config.get_str("Tellstick.MapTurnOffTo"),
            config.get_bool("Tellstick.ReverseMappingOnIncoming"),
        )

    def outbound(self, method: str) -> str:
        """Device -> broker: canonical method to alias."""
        if self.turn_on_alias and method == TURNON:
            return self.turn_on_alias
        if self.turn_off_alias and method == TURNOFF:
            return self.turn_off_alias
        return method

    def inbound(self, method: str) -> str:
        """Broker -> device: alias back to canonical method."""
        if not self.reverse_on_incoming:
            return method
        if self.turn_on_alias and method == self.turn_on_alias:
            return TURNON
        if self.turn_off_alias and method == self.turn_off_alias:
            return TURNOFF
        return method
