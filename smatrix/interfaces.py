"""
Interfaces for the smatrix exporter.

Abstract base classes that define contracts for the pluggable components
(serial port, clock, logger). This enables dependency injection and
mock-based testing without an antenna attached.
"""

from abc import ABC, abstractmethod
from typing import List
from dataclasses import dataclass
from datetime import datetime


BAUD_RATE = 16550
READ_TIMEOUT_SECONDS = 2.0


@dataclass
class PortInfo:
    """Information about a serial port."""
    device: str
    description: str
    hwid: str


@dataclass(frozen=True)
class TransportSettings:
    """
    Fixed transport parameters of the RF receiver link.

    The receiver only talks 16550 baud 8N1 without RS-485 signaling, so
    none of these are exposed as configuration.
    """
    baud: int = BAUD_RATE
    bytesize: int = 8
    stopbits: int = 1
    parity: str = "N"
    timeout: float = READ_TIMEOUT_SECONDS
    rs485: bool = False


class SerialPortInterface(ABC):
    """
    Abstract interface for serial port operations.

    Implementations:
    - RealSerialPort: Wraps pyserial for actual hardware
    - MockSerialPort: For unit testing without hardware
    """

    @abstractmethod
    def open(self, port: str, settings: TransportSettings) -> None:
        """Open serial port. Raises DeviceOpenError on failure."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close serial port."""
        pass

    @abstractmethod
    def is_open(self) -> bool:
        """Check if port is currently open."""
        pass

    @abstractmethod
    def read_line(self, max_bytes: int) -> bytes:
        """
        Read one line, blocking until a newline, max_bytes or the read timeout.

        Returns b'' when nothing arrived before the timeout.
        Raises PortReadError on I/O failure.
        """
        pass

    @staticmethod
    @abstractmethod
    def list_ports() -> List[PortInfo]:
        """List available serial ports."""
        pass


class ClockInterface(ABC):
    """
    Abstract interface for time operations.

    Enables deterministic testing of time-dependent logic.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get current datetime."""
        pass

    @abstractmethod
    def timestamp(self) -> float:
        """Get current timestamp (seconds since epoch)."""
        pass

    @abstractmethod
    def monotonic(self) -> float:
        """Seconds on a clock that never steps backward. Only differences are meaningful."""
        pass

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Sleep for specified duration."""
        pass


class LoggerInterface(ABC):
    """
    Abstract interface for logging.

    Separates supervision logic from log output formatting.
    """

    @abstractmethod
    def debug(self, msg: str) -> None:
        """Log debug message."""
        pass

    @abstractmethod
    def info(self, msg: str) -> None:
        """Log info message."""
        pass

    @abstractmethod
    def warning(self, msg: str) -> None:
        """Log warning message."""
        pass

    @abstractmethod
    def error(self, msg: str) -> None:
        """Log error message."""
        pass
