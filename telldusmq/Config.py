"""
telldusmq bridge between telldusd and an MQTT broker

(C) 2025

module Config

Loads telldusmq.yaml and watches it for changes.

Keys are addressed as case-insensitive dotted paths, so the file

    Mqtt:
      Events:
        PublishTopic: telldus/events/{Id}

is read with `config.get_str("Mqtt.Events.PublishTopic")`.
Values are looked up on every call, so a reloaded file is picked up by
the next event or command that needs it.
"""

# std libraries
import os
import logging
from threading import Event, RLock, Thread
from typing import Any, Callable, Dict, List, Optional

# external libraries
import yaml

# personal libraries
from .exceptions import ConfigError

LOGGER = logging.getLogger(__name__)

CONFIG_NAME = "telldusmq.yaml"
CONFIG_PATHS = [
    "/etc/telldusmq/",
    "~/.telldusmq/",
    "./",
]

DEFAULT_CONFIG = {
    'mqtt.broker': 'tcp://localhost:1883',
    'mqtt.clientid': 'telldusmq',
    'mqtt.username': None,
    'mqtt.password': None,
    'mqtt.cacert': None,
    'mqtt.keepalive': 60,
    'mqtt.publishtimeout': 10,
    'mqtt.events.subscribetopic': 'telldus/transmit',
    'mqtt.events.subscribedeviceevents': 'telldus/devices/+',
    'mqtt.events.publishtopic': 'telldus/events/{Protocol}/{Model}/{House}/{Unit}',
    'mqtt.events.publishpayload': '{Method}',
    'mqtt.sensors.publishtopic': 'telldus/sensors/{Protocol}/{Model}/{Id}/{DataType}',
    'mqtt.sensors.publishpayload': '{Value}',
    'tellstick.unixsocketevents': '/tmp/TelldusEvents',
    'tellstick.unixsocketclient': '/tmp/TelldusClient',
    'tellstick.mapturnonto': '',
    'tellstick.mapturnoffto': '',
    'tellstick.reversemappingonincoming': False,
    'tellstick.splittemperatureandhumidity': False,
    'tellstick.failontemplateerror': False,
    'tellstick.reconnectdelay': 5,
    'tellstick.sockettimeout': 5,
    'log.level': 'INFO',
}

# typed options, checked before a configuration is used
BOOL_KEYS = [
    'Tellstick.ReverseMappingOnIncoming',
    'Tellstick.SplitTemperatureAndHumidity',
    'Tellstick.FailOnTemplateError',
]
INT_KEYS = [
    'Mqtt.Keepalive',
]
FLOAT_KEYS = [
    'Mqtt.PublishTimeout',
    'Tellstick.ReconnectDelay',
    'Tellstick.SocketTimeout',
]
STR_KEYS = [
    'Mqtt.Broker',
    'Mqtt.ClientId',
    'Mqtt.Events.SubscribeTopic',
    'Mqtt.Events.SubscribeDeviceEvents',
    'Mqtt.Events.PublishTopic',
    'Mqtt.Events.PublishPayload',
    'Mqtt.Sensors.PublishTopic',
    'Mqtt.Sensors.PublishPayload',
    'Tellstick.UnixSocketEvents',
    'Tellstick.UnixSocketClient',
    'Tellstick.MapTurnOnTo',
    'Tellstick.MapTurnOffTo',
]

TRUE_STRINGS = ('true', 'yes', 'on', '1')
FALSE_STRINGS = ('false', 'no', 'off', '0', '')


class Config:
    """Read-only view of the bridge configuration.

    Attributes:
        path (Optional[str]): File the values were loaded from, None when
            running on defaults only.
        values (Dict[str, Any]): Flattened, lower-cased keys from the file.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None, path: Optional[str] = None):
        self.path = path
        self.values = flatten(values or {})
        self._lock = RLock()

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load the given file, or search the default locations.

        Raises:
            ConfigError: The file is missing or cannot be parsed.
        """
        path = path or find_config_file()
        if path is None:
            raise ConfigError(
                f"No {CONFIG_NAME} found in {', '.join(CONFIG_PATHS)}")
        return cls(read_yaml(path), path)

    def reload(self) -> bool:
        """Re-read the file. On error the previous values stay active."""
        if self.path is None:
            return False
        try:
            values = flatten(read_yaml(self.path))
            Config(values, self.path).validate()
        except ConfigError as ex:
            LOGGER.error(f"Keeping previous configuration: {ex}")
            return False
        with self._lock:
            old_broker = self.get_str('Mqtt.Broker')
            self.values = values
            if self.get_str('Mqtt.Broker') != old_broker:
                LOGGER.warning("Mqtt.Broker changed, restart the bridge to connect to the new broker")
        return True

    def validate(self):
        """Read every typed option once.

        Raises:
            ConfigError: An option has a value of the wrong type.
        """
        for key in BOOL_KEYS:
            self.get_bool(key)
        for key in INT_KEYS:
            self.get_int(key)
        for key in FLOAT_KEYS:
            self.get_float(key)
        for key in STR_KEYS:
            self.get_str(key)

    def is_set(self, key: str) -> bool:
        with self._lock:
            return self.values.get(key.lower()) is not None

    def get(self, key: str) -> Any:
        key = key.lower()
        with self._lock:
            value = self.values.get(key)
        if value is None:
            return DEFAULT_CONFIG.get(key)
        return value

    def get_str(self, key: str) -> Optional[str]:
        value = self.get(key)
        if value is None:
            return None
        if isinstance(value, (dict, list)):
            raise ConfigError(f"{key} must be a string, got {value!r}")
        return str(value)

    def get_int(self, key: str) -> Optional[int]:
        value = self.get(key)
        if value is None:
            return None
        if isinstance(value, bool):
            raise ConfigError(f"{key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (ValueError, TypeError) as ex:
            raise ConfigError(f"{key} must be an integer, got {value!r}") from ex

    def get_float(self, key: str) -> Optional[float]:
        value = self.get(key)
        if value is None:
            return None
        if isinstance(value, bool):
            raise ConfigError(f"{key} must be a number, got {value!r}")
        try:
            return float(value)
        except (ValueError, TypeError) as ex:
            raise ConfigError(f"{key} must be a number, got {value!r}") from ex

    def get_bool(self, key: str) -> bool:
        value = self.get(key)
        if value is None:
            return False
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in TRUE_STRINGS:
                return True
            if lowered in FALSE_STRINGS:
                return False
        raise ConfigError(f"{key} must be a boolean, got {value!r}")


class ConfigWatcher:
    """Polls the configuration file and reloads it when it changes.

    Attributes:
        config (Config): Configuration to reload.
        interval (float): Seconds between modification time checks.
        on_reload (Optional[Callable]): Called with the config after a
            successful reload.
    """

    def __init__(self, config: Config, interval: float = 2.0,
                 on_reload: Optional[Callable[[Config], None]] = None):
        self.config = config
        self.interval = interval
        self.on_reload = on_reload
        self.stop_event = Event()
        self._thread = None
        self._mtime = self._stat()

    def start(self):
        if self.config.path is None:
            LOGGER.info("No configuration file, not watching for changes")
            return
        self._thread = Thread(target=self.run, name="config-watcher", daemon=True)
        self._thread.start()

    def stop(self):
        self.stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1)

    def run(self):
        while not self.stop_event.wait(self.interval):
            self.check()

    def check(self) -> bool:
        """Reload if the file's modification time moved. Returns True on reload."""
        mtime = self._stat()
        if mtime is None or mtime == self._mtime:
            return False
        self._mtime = mtime
        LOGGER.info(f"Reloading configuration {self.config.path}")
        if not self.config.reload():
            return False
        if self.on_reload is not None:
            self.on_reload(self.config)
        return True

    def _stat(self) -> Optional[float]:
        if self.config.path is None:
            return None
        try:
            return os.stat(self.config.path).st_mtime
        except OSError as ex:
            LOGGER.warning(f"Cannot stat {self.config.path}: {ex}")
            return None


def find_config_file(paths: Optional[List[str]] = None) -> Optional[str]:
    for directory in paths or CONFIG_PATHS:
        candidate = os.path.join(os.path.expanduser(directory), CONFIG_NAME)
        if os.path.isfile(candidate):
            return candidate
    return None


def read_yaml(path: str) -> Dict[str, Any]:
    """Read a YAML mapping from path.

    Raises:
        ConfigError: If the file cannot be opened or parsed.
    """
    try:
        with open(path, 'r', encoding='utf-8') as file:
            data = yaml.safe_load(file)
    except (OSError, yaml.YAMLError) as ex:
        error_type = "open" if isinstance(ex, OSError) else "parse"
        raise ConfigError(f"Failed to {error_type} {path}: {ex}") from ex
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested mappings into lower-cased dotted keys."""
    flat = {}
    for key, value in data.items():
        name = f"{prefix}{str(key).lower()}"
        if isinstance(value, dict):
            flat.update(flatten(value, name + "."))
        else:
            flat[name] = value
    return flat
