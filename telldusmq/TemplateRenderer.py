"""
telldusmq bridge between telldusd and an MQTT broker

(C) 2025

module TemplateRenderer

Renders MQTT topics and payloads from templates such as

    telldus/sensors/{Protocol}/{Id}/{DataType}
    {{"method": "{Method}", "house": "{House}"}}

Placeholders are the names in TelldusEvent.TEMPLATE_NAMES. Templates
written for the Go text/template syntax, `telldus/{{.Id}}`, are converted
on the fly so older configuration files keep working.
"""

# std libraries
import re
import string
from functools import lru_cache
from typing import Tuple

# external libraries
pass

# personal libraries
from .TelldusEvent import DeviceEvent, TEMPLATE_NAMES
from .exceptions import TemplateError

GO_ACTION = re.compile(r"\{\{\s*\.(\w+)\s*\}\}")

_FORMATTER = string.Formatter()


def render(template: str, event: DeviceEvent) -> str:
    """Substitute the event fields into the template.

    Raises:
        TemplateError: The template is malformed or uses a placeholder
            that is not a DeviceEvent field.
    """
    if template is None:
        raise TemplateError("template is not configured")
    fmt, _names = _compile(template)
    try:
        return fmt.format_map(event.template_fields())
    except (KeyError, IndexError, ValueError, TypeError) as ex:
        raise TemplateError(f"Error executing template '{template}': {ex}") from ex


def validate(template: str):
    """Render against an empty event so broken templates show up at startup."""
    render(template, DeviceEvent())


@lru_cache(maxsize=64)
def _compile(template: str) -> Tuple[str, Tuple[str, ...]]:
    fmt = _from_go_syntax(template) if GO_ACTION.search(template) else template
    try:
        parsed = list(_FORMATTER.parse(fmt))
    except ValueError as ex:
        raise TemplateError(f"Error parsing template '{template}': {ex}") from ex

    names = []
    for _literal, field_name, _spec, _conversion in parsed:
        if field_name is None:
            continue
        if field_name not in TEMPLATE_NAMES:
            raise TemplateError(
                f"Error parsing template '{template}': unknown field '{field_name}', "
                f"expected one of {', '.join(TEMPLATE_NAMES)}")
        names.append(field_name)
    return fmt, tuple(names)


def _from_go_syntax(template: str) -> str:
    # split() alternates literal text and captured field names
    parts = GO_ACTION.split(template)
    out = []
    for i, part in enumerate(parts):
        if i % 2:
            out.append("{" + part + "}")
        else:
            out.append(part.replace("{", "{{").replace("}", "}}"))
    return "".join(out)
