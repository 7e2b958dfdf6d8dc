"""
telldusmq bridge between telldusd and an MQTT broker

(C) 2025

module TelldusCore

Client side of the telldusd socket protocol. Strings are sent as
`<length>:<text>` and integers as `i<number>s`, so turning on device 1
is the request `8:tdTurnOni1s` and the daemon answers `i0s`.
"""

# std libraries
import re
from typing import Optional

# external libraries
pass

# personal libraries
pass

# canonical method vocabulary
TURNON = "turnon"
TURNOFF = "turnoff"
LEARN = "learn"
DIM = "dim"

# method bit values as used by telldus-core
TELLSTICK_TURNON = 1
TELLSTICK_TURNOFF = 2
TELLSTICK_DIM = 16
TELLSTICK_LEARN = 32

# canonical method -> telldusd function
DAEMON_FUNCTIONS = {
    TURNON: "tdTurnOn",
    TURNOFF: "tdTurnOff",
    LEARN: "tdLearn",
    DIM: "tdDim",
}

# result codes
TELLSTICK_SUCCESS = 0
TELLSTICK_ERROR_NOT_FOUND = -1
TELLSTICK_ERROR_PERMISSION_DENIED = -2
TELLSTICK_ERROR_DEVICE_NOT_FOUND = -3
TELLSTICK_ERROR_METHOD_NOT_SUPPORTED = -4
TELLSTICK_ERROR_COMMUNICATION = -5
TELLSTICK_ERROR_CONNECTING_SERVICE = -6
TELLSTICK_ERROR_UNKNOWN_RESPONSE = -7
TELLSTICK_ERROR_SYNTAX = -8
TELLSTICK_ERROR_BROKEN_PIPE = -9
TELLSTICK_ERROR_COMMUNICATING_SERVICE = -10
TELLSTICK_ERROR_UNKNOWN = -99

RESULT_MESSAGES = {
    TELLSTICK_SUCCESS: "Success",
    TELLSTICK_ERROR_NOT_FOUND: "TellStick not found",
    TELLSTICK_ERROR_PERMISSION_DENIED: "Permission denied",
    TELLSTICK_ERROR_DEVICE_NOT_FOUND: "Device not found",
    TELLSTICK_ERROR_METHOD_NOT_SUPPORTED: "The method you tried to use is not supported by the device",
    TELLSTICK_ERROR_COMMUNICATION: "An error occurred while communicating with TellStick",
    TELLSTICK_ERROR_CONNECTING_SERVICE: "Could not connect to the Telldus Service",
    TELLSTICK_ERROR_UNKNOWN_RESPONSE: "Received an unknown response",
    TELLSTICK_ERROR_SYNTAX: "Syntax error",
    TELLSTICK_ERROR_BROKEN_PIPE: "Broken pipe",
    TELLSTICK_ERROR_COMMUNICATING_SERVICE: "An error occurred while communicating with the Telldus Service",
    TELLSTICK_ERROR_UNKNOWN: "Unknown error",
}

RESULT_PATTERN = re.compile(r"i(-?\d+)s")


def encode_string(value: str) -> str:
    return f"{len(value)}:{value}"


def encode_int(value: int) -> str:
    return f"i{int(value)}s"


def get_message(function: str, device_id: int) -> str:
    """Request for a function that only takes a device id."""
    return encode_string(function) + encode_int(device_id)


def get_message_level(function: str, device_id: int, level: int) -> str:
    """Request for a function taking a device id and a level (dim)."""
    return encode_string(function) + encode_int(device_id) + encode_int(level)


def get_int_from_result(response: Optional[str]) -> int:
    """Parse the integer answer of the daemon.

    Anything that is not an `i<number>s` token counts as an unknown
    response rather than as success.
    """
    if not response:
        return TELLSTICK_ERROR_UNKNOWN_RESPONSE
    match = RESULT_PATTERN.match(response.strip())
    if match is None:
        return TELLSTICK_ERROR_UNKNOWN_RESPONSE
    return int(match.group(1))


def get_result_message(code: int) -> str:
    return RESULT_MESSAGES.get(code, RESULT_MESSAGES[TELLSTICK_ERROR_UNKNOWN])
