"""Exceptions raised by the telldusmq bridge."""


class TelldusMQError(Exception):
    """Base class for bridge errors."""


class ConfigError(TelldusMQError):
    """Configuration could not be loaded or holds an invalid value."""


class TemplateError(TelldusMQError):
    """A topic or payload template cannot be rendered."""
