"""
telldusmq bridge between telldusd and an MQTT broker

(C) 2025

module Bridge

The Bridge wires the two sides together:

- raw device events from telldusd are mapped, rendered through the
  configured templates and published to the broker;
- messages on the command topics are decoded, reverse mapped and handed
  to the CommandDispatcher.
"""

# std libraries
import ssl
import logging
from typing import Optional, Tuple
from urllib.parse import urlsplit

# external libraries
from paho.mqtt.client import Client, MQTTv311
from paho.mqtt.enums import CallbackAPIVersion

# personal libraries
from . import TemplateRenderer
from .Config import Config
from .MethodMapper import MethodMapper
from .RawEventParser import RawEventParser
from .ConnectionSupervisor import ConnectionSupervisor, SocketHandle
from .CommandDispatcher import CommandDispatcher, CommandResult
from .TelldusCore import DIM
from .TelldusEvent import BrokerCommand, DeviceEvent, PROTOCOL_TELLDUS_DEVICE
from .exceptions import ConfigError, TemplateError

LOGGER = logging.getLogger(__name__)

CLASS_COMMAND = "command"
CLASS_SENSOR = "sensor"
DATA_TYPE_TEMP = "temp"
DATA_TYPE_HUMIDITY = "humidity"

# raw house/unit addressing needs the native telldus library
PROTOCOL_ARCHTECH = "archtech"

QOS = 0
DIM_LEVEL_MIN = 0
DIM_LEVEL_MAX = 255

BROKER_PORTS = {
    'tcp': 1883,
    'mqtt': 1883,
    'ssl': 8883,
    'tls': 8883,
    'mqtts': 8883,
}

TEMPLATE_KEYS = [
    'Mqtt.Events.PublishTopic',
    'Mqtt.Events.PublishPayload',
    'Mqtt.Sensors.PublishTopic',
    'Mqtt.Sensors.PublishPayload',
]


class Bridge:
    """Bidirectional telldusd <-> MQTT bridge.

    Attributes:
        config (Config): Live configuration, re-read per event/command.
        handle (SocketHandle): Event socket state shared by the supervisor
            and the dispatcher.
        parser (RawEventParser): Feeds `publish_event`.
        supervisor (ConnectionSupervisor): Owns the event socket.
        dispatcher (CommandDispatcher): Talks to the client socket.
        mqttc (Optional[Client]): paho client, created by `start`.
    """

    def __init__(self, config: Config, mqttc: Optional[Client] = None):
        self.config = config
        self.handle = SocketHandle()
        self.parser = RawEventParser(self.publish_event)
        self.supervisor = ConnectionSupervisor(
            config.get_str('Tellstick.UnixSocketEvents'),
            self.parser,
            self.handle,
            retry_delay=config.get_float('Tellstick.ReconnectDelay'),
        )
        self.dispatcher = CommandDispatcher(
            config.get_str('Tellstick.UnixSocketClient'),
            self.handle,
            timeout=config.get_float('Tellstick.SocketTimeout'),
        )
        self.mqttc = mqttc
        self.subscribe_topic = config.get_str('Mqtt.Events.SubscribeTopic')
        self.device_topic = config.get_str('Mqtt.Events.SubscribeDeviceEvents')

    def start(self):
        """Validate templates, connect to the broker and start reading events.

        Raises:
            TemplateError: A configured template is broken.
            ConfigError: An option or the broker setting is invalid.
            OSError: The broker cannot be reached.
        """
        self.config.validate()
        self.validate_templates()
        if self.mqttc is None:
            self.mqttc = self._mqtt_client()
        host, port = parse_broker(self.config.get_str('Mqtt.Broker'))
        LOGGER.info(f"Connecting to MQTT broker {host}:{port}")
        self.mqttc.connect(host, port, keepalive=self.config.get_int('Mqtt.Keepalive'))
        self.mqttc.loop_start()
        self.supervisor.start()

    def stop(self):
        self.supervisor.stop(timeout=self.supervisor.retry_delay + 1)
        if self.mqttc is not None:
            self.mqttc.loop_stop()
            self.mqttc.disconnect()
        LOGGER.info("Bridge stopped.")

    def is_alive(self) -> bool:
        return self.supervisor.is_alive()

    def validate_templates(self):
        for key in TEMPLATE_KEYS:
            template = self.config.get_str(key)
            try:
                TemplateRenderer.validate(template)
            except TemplateError as ex:
                raise TemplateError(f"{key}: {ex}") from ex

    def _mqtt_client(self) -> Client:
        mqttc = Client(CallbackAPIVersion.VERSION1,
                       client_id=self.config.get_str('Mqtt.ClientId'),
                       protocol=MQTTv311)
        mqttc.on_connect = self._on_connect
        mqttc.on_disconnect = self._on_disconnect
        mqttc.on_message = self._on_unhandled_message

        username = self.config.get_str('Mqtt.Username')
        if username:
            mqttc.username_pw_set(username, self.config.get_str('Mqtt.Password'))

        if self.config.is_set('Mqtt.CACert'):
            cafile = self.config.get_str('Mqtt.CACert')
            LOGGER.info(f"TLS CACert {cafile}")
            mqttc.tls_set_context(create_tls_context(cafile))
        return mqttc

    def _on_connect(self, mqttc, _userdata, _flags, rc):
        """Subscribe to the command topics on every (re)connect."""
        if rc != 0:
            LOGGER.error(f"MQTT connect failed with rc:{rc}")
            return
        LOGGER.info("MQTT connected")
        for topic, callback in ((self.subscribe_topic, self.on_message),
                                (self.device_topic, self.on_device_message)):
            if not topic:
                continue
            LOGGER.info(f"Subscribing to: {topic}")
            mqttc.message_callback_add(topic, callback)
            result, mid = mqttc.subscribe(topic, QOS)
            if result == 0:
                LOGGER.info(f"Subscribed to {topic} MID: {mid}, res: {result}")
            else:
                LOGGER.error(f"Unable to subscribe to topic {topic} MID: {mid}, res: {result}")

    def _on_disconnect(self, _mqttc, _userdata, rc):
        if rc != 0:
            LOGGER.warning(f"MQTT disconnected unexpectedly (rc: {rc}), paho will reconnect")
        else:
            LOGGER.info("MQTT graceful disconnection")

    def _on_unhandled_message(self, _mqttc, _userdata, message):
        LOGGER.debug(f"Ignoring message on {message.topic}")

    # device -> broker

    def publish_event(self, event: DeviceEvent):
        """Publish one parsed device event, called from the parser.

        Failures are logged and the event is dropped so the event reader
        keeps running. Only a template error with
        Tellstick.FailOnTemplateError set is raised.
        """
        try:
            self._publish_event(event)
        except TemplateError:
            raise
        except Exception as ex:
            LOGGER.error(f"Dropping event {event}: {ex}", exc_info=True)

    def _publish_event(self, event: DeviceEvent):
        if event.event_class == CLASS_COMMAND:
            topic_template = self.config.get_str('Mqtt.Events.PublishTopic')
            payload_template = self.config.get_str('Mqtt.Events.PublishPayload')
            event.method = MethodMapper.from_config(self.config).outbound(event.method)
        else:
            topic_template = self.config.get_str('Mqtt.Sensors.PublishTopic')
            payload_template = self.config.get_str('Mqtt.Sensors.PublishPayload')
            event.value = event.temp
            event.data_type = DATA_TYPE_TEMP

        self._publish_rendered(topic_template, payload_template, event)

        # humidity goes out as a second reading of the same event
        if (event.event_class == CLASS_SENSOR and
                self.config.get_bool('Tellstick.SplitTemperatureAndHumidity')):
            event.data_type = DATA_TYPE_HUMIDITY
            event.value = event.humidity
            self._publish_rendered(topic_template, payload_template, event)

    def _publish_rendered(self, topic_template: str, payload_template: str, event: DeviceEvent) -> bool:
        try:
            topic = TemplateRenderer.render(topic_template, event)
            payload = TemplateRenderer.render(payload_template, event)
        except TemplateError as ex:
            if self.config.get_bool('Tellstick.FailOnTemplateError'):
                LOGGER.critical(f"{ex}")
                raise
            LOGGER.error(f"Dropping event {event}: {ex}")
            return False
        return self.mqtt_pub(topic, payload)

    def mqtt_pub(self, topic: str, payload: str) -> bool:
        """Publish and wait until paho has handed the message to the broker."""
        LOGGER.info(f"Publish to '{topic}' with '{payload}'")
        if self.mqttc is None:
            LOGGER.error("MQTT client not started, cannot publish")
            return False
        try:
            info = self.mqttc.publish(topic, payload, qos=QOS, retain=False)
            info.wait_for_publish(timeout=self.config.get_float('Mqtt.PublishTimeout'))
        except (ValueError, RuntimeError) as ex:
            LOGGER.error(f"Publish to '{topic}' failed: {ex}")
            return False
        if not info.is_published():
            LOGGER.warning(f"Publish to '{topic}' not confirmed in time")
            return False
        return True

    # broker -> device

    def on_message(self, _mqttc, _userdata, message):
        """Generic command topic carrying a JSON BrokerCommand."""
        try:
            self.process_json_command(message.topic, message.payload)
        except Exception as ex:
            LOGGER.error(f"Failed to process message from {message.topic}: {ex}", exc_info=True)

    def process_json_command(self, topic: str, payload) -> Optional[CommandResult]:
        try:
            command = BrokerCommand.from_json(payload)
        except ValueError as ex:
            LOGGER.error(f"Invalid command on {topic}: {payload!r}: {ex}")
            return None
        LOGGER.info(f"Transmit event requested: {command}")

        if command.protocol == PROTOCOL_TELLDUS_DEVICE:
            return self.handle_command(command)
        if command.protocol == PROTOCOL_ARCHTECH:
            LOGGER.warning(f"Raw {PROTOCOL_ARCHTECH} commands are not supported in this build")
        else:
            LOGGER.warning(f"Unsupported protocol: {command.protocol}")
        return None

    def on_device_message(self, _mqttc, _userdata, message):
        """Per-device topic: `<prefix>/<device id>`, payload method or dim level."""
        try:
            command = self.decode_device_message(message.topic, message.payload)
            if command is not None:
                self.dispatcher.dispatch(command)
        except Exception as ex:
            LOGGER.error(f"Failed to process message from {message.topic}: {ex}", exc_info=True)

    def decode_device_message(self, topic: str, payload) -> Optional[BrokerCommand]:
        """Command for a per-device message, reverse mapped, None if invalid.

        Aliases are mapped before the payload is read as a dim level, so
        numeric aliases such as `1`/`0` stay on/off commands.
        """
        device_id_string = topic.rsplit('/', 1)[-1]
        try:
            device_id = int(device_id_string)
        except ValueError:
            LOGGER.error(f"Error parsing device id '{device_id_string}' from {topic}")
            return None

        if isinstance(payload, bytes):
            payload = payload.decode('utf-8', errors='replace')
        method = payload.strip()
        command = BrokerCommand(protocol=PROTOCOL_TELLDUS_DEVICE, device_id=device_id, method=method)

        mapped = MethodMapper.from_config(self.config).inbound(method)
        if mapped != method:
            command.method = mapped
            return command

        level = parse_level(method)
        if level is not None:
            if not DIM_LEVEL_MIN <= level <= DIM_LEVEL_MAX:
                LOGGER.error(f"Dim level {level} for device {device_id} out of range "
                             f"{DIM_LEVEL_MIN}..{DIM_LEVEL_MAX}")
                return None
            command.method = DIM
            command.level = level
        elif method == DIM:
            LOGGER.error(f"Error parsing dim level '{method}' for device {device_id}")
            return None
        return command

    def handle_command(self, command: BrokerCommand) -> Optional[CommandResult]:
        """Reverse map the method and dispatch it to telldusd."""
        command.method = MethodMapper.from_config(self.config).inbound(command.method)
        return self.dispatcher.dispatch(command)


def parse_level(text: str) -> Optional[int]:
    """Decimal dim level, None if text is not a plain ASCII integer."""
    digits = text[1:] if text.startswith("-") else text
    if not (digits.isascii() and digits.isdigit()):
        return None
    return int(text)


def parse_broker(broker: Optional[str]) -> Tuple[str, int]:
    """Split a broker address such as `tcp://localhost:1883`.

    Raises:
        ConfigError: The address has no host or an unknown scheme.
    """
    if not broker:
        raise ConfigError("Mqtt.Broker is not configured")
    if "://" not in broker:
        broker = "tcp://" + broker
    parts = urlsplit(broker)
    scheme = parts.scheme.lower()
    if scheme not in BROKER_PORTS:
        raise ConfigError(f"Unsupported broker scheme '{scheme}' in {broker}")
    try:
        port = parts.port or BROKER_PORTS[scheme]
    except ValueError as ex:
        raise ConfigError(f"Invalid broker port in {broker}: {ex}") from ex
    if not parts.hostname:
        raise ConfigError(f"No broker host in {broker}")
    return parts.hostname, port


def create_tls_context(cafile: str) -> ssl.SSLContext:
    """Server-verifying TLS context trusting cafile, TLS 1.2 or newer.

    Raises:
        ConfigError: The CA certificate cannot be read.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED
    try:
        context.load_verify_locations(cafile=cafile)
    except (OSError, ssl.SSLError) as ex:
        raise ConfigError(f"Unable to read CA certificate {cafile}: {ex}") from ex
    return context
