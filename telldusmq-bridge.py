#!/usr/bin/env python3
"""
This is the telldusmq bridge, written in Python3.
It forwards raw device events from telldusd to an MQTT broker and
sends commands received over MQTT back to telldusd.

telldusmq bridge between telldusd and an MQTT broker

(c) 2025
"""

# std libraries
import sys
import time
import logging
import argparse

# external libraries
pass

# local imports
from telldusmq import Bridge, Config, ConfigWatcher, TelldusMQError

LOGGER = logging.getLogger("telldusmq")

VERSION = "0.1.0"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

"""
0.1.0
DONE raw device events published through topic/payload templates
DONE split temperature and humidity readings
DONE turnon/turnoff aliases, optionally reversed for incoming commands
DONE generic JSON command topic and per-device topic
DONE endless reconnect to the telldusd event socket
DONE template errors drop the event unless Tellstick.FailOnTemplateError
DONE configuration reload on file change
"""


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Message queue bridge for Telldus Core")
    parser.add_argument("-c", "--config", help="path to telldusmq.yaml")
    parser.add_argument("-d", "--debug", action="store_true", help="log at DEBUG level")
    parser.add_argument("--version", action="version", version=VERSION)
    return parser.parse_args(argv)


def setup_logging(config, debug=False):
    level = logging.DEBUG if debug else config.get_str("Log.Level").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')


if __name__ == "__main__":
    args = parse_args()
    bridge = None
    watcher = None
    status = 0
    try:
        config = Config.load(args.config)
        setup_logging(config, args.debug)
        LOGGER.info(f"Started Message Queue for Telldus Core v{VERSION}")
        LOGGER.info(f"Configuration loaded from {config.path}")

        watcher = ConfigWatcher(config)
        watcher.start()

        bridge = Bridge(config)
        bridge.start()

        """
        Sits around and does nothing while the event reader runs. The
        reader only ends on its own after a fatal template error.
        """
        while bridge.is_alive():
            time.sleep(1)
        LOGGER.error("Telldusd event reader terminated")
        status = 1
    except (KeyboardInterrupt, SystemExit):
        LOGGER.warning("Received interrupt or exit...")
    except (TelldusMQError, OSError, ValueError) as err:
        logging.basicConfig(format=LOG_FORMAT)
        LOGGER.error(f"Startup failed: {err}", exc_info=True)
        status = 1
    finally:
        if bridge is not None:
            bridge.stop()
        if watcher is not None:
            watcher.stop()
    sys.exit(status)
