"""Classes used by the telldusmq bridge."""

from .TelldusEvent import DeviceEvent as DeviceEvent
from .TelldusEvent import BrokerCommand as BrokerCommand
from .RawEventParser import RawEventParser as RawEventParser
from .MethodMapper import MethodMapper as MethodMapper
from .ConnectionSupervisor import ConnectionSupervisor as ConnectionSupervisor
from .ConnectionSupervisor import SocketHandle as SocketHandle
from .CommandDispatcher import CommandDispatcher as CommandDispatcher
from .CommandDispatcher import CommandResult as CommandResult
from .Config import Config as Config
from .Config import ConfigWatcher as ConfigWatcher
from .Bridge import Bridge as Bridge
from .exceptions import TelldusMQError as TelldusMQError
from .exceptions import ConfigError as ConfigError
from .exceptions import TemplateError as TemplateError
