"""
smatrix exporter - serial link supervision for an Uponor Smatrix RF receiver.

Keeps the antenna's serial link alive, classifies the receiver's output and
hands valid frames to a downstream consumer.
"""

from .interfaces import (
    PortInfo,
    TransportSettings,
    SerialPortInterface,
    ClockInterface,
    LoggerInterface,
)
from .errors import (
    SmatrixError,
    ConfigurationError,
    DeviceOpenError,
    PortReadError,
    EndOfStream,
    InstanceLockError,
)
from .classifier import Verdict, ClassifiedLine, classify
from .gate import Gate
from .port_session import PortSession
from .reader import ReaderLoop, ReaderState, TeardownSignal, LivenessClock
from .watchdog import Watchdog, apply_jitter
from .collector import FrameCollector
from .config import Config, SampleConfig, ExporterSettings, load_config
from .exporter import Exporter

__version__ = "0.1.0"

__all__ = [
    "PortInfo",
    "TransportSettings",
    "SerialPortInterface",
    "ClockInterface",
    "LoggerInterface",
    "SmatrixError",
    "ConfigurationError",
    "DeviceOpenError",
    "PortReadError",
    "EndOfStream",
    "InstanceLockError",
    "Verdict",
    "ClassifiedLine",
    "classify",
    "Gate",
    "PortSession",
    "ReaderLoop",
    "ReaderState",
    "TeardownSignal",
    "LivenessClock",
    "Watchdog",
    "apply_jitter",
    "FrameCollector",
    "Config",
    "SampleConfig",
    "ExporterSettings",
    "load_config",
    "Exporter",
]
