"""
Mock implementations for testing.

These classes implement the abstract interfaces with in-memory behavior
suitable for unit testing without an antenna attached.
"""

from typing import Optional, List
from datetime import datetime, timedelta
from collections import deque
import threading
import time

from .errors import DeviceOpenError, PortReadError
from .interfaces import (
    SerialPortInterface, ClockInterface, LoggerInterface,
    PortInfo, TransportSettings,
)


class MockSerialPort(SerialPortInterface):
    """
    Mock serial port for testing.

    Provides a queue-based simulation of serial communication.
    Test code can inject data with inject_line() and inspect open/close
    activity through the counters.
    """

    def __init__(self, empty_read_delay: float = 0.0):
        self._lock = threading.Lock()
        self._is_open = False
        self._port = ""
        self._settings: Optional[TransportSettings] = None
        self._rx_buffer: deque = deque()
        self._fail_on_open = False
        self._read_failures = 0
        self._empty_read_delay = empty_read_delay
        self._available_ports: List[PortInfo] = []
        self.open_count = 0
        self.close_count = 0
        self.read_count = 0

    def open(self, port: str, settings: TransportSettings) -> None:
        if self._fail_on_open:
            raise DeviceOpenError(port, "mock open failure")
        with self._lock:
            self._port = port
            self._settings = settings
            self._is_open = True
            self.open_count += 1

    def close(self) -> None:
        with self._lock:
            self._is_open = False
            self.close_count += 1

    def is_open(self) -> bool:
        return self._is_open

    def read_line(self, max_bytes: int) -> bytes:
        with self._lock:
            self.read_count += 1
            if not self._is_open:
                raise PortReadError("mock port is closed")
            if self._read_failures:
                self._read_failures -= 1
                raise PortReadError("mock read failure")
            if self._rx_buffer:
                data = self._rx_buffer.popleft()
                if len(data) > max_bytes:
                    # Leave the rest for the next read, like a buffered reader would
                    self._rx_buffer.appendleft(data[max_bytes:])
                    data = data[:max_bytes]
                return data
        if self._empty_read_delay:
            time.sleep(self._empty_read_delay)
        return b""

    @staticmethod
    def list_ports() -> List[PortInfo]:
        return []

    # Test helper methods

    @property
    def port(self) -> str:
        return self._port

    @property
    def settings(self) -> Optional[TransportSettings]:
        return self._settings

    def inject_line(self, line: str) -> None:
        """Inject a line into the receive buffer (for testing)."""
        self._rx_buffer.append((line + "\r\n").encode())

    def inject_bytes(self, data: bytes) -> None:
        """Inject raw bytes into the receive buffer."""
        self._rx_buffer.append(data)

    def pending(self) -> int:
        """Number of buffered reads not consumed yet."""
        return len(self._rx_buffer)

    def set_fail_on_open(self, fail: bool) -> None:
        """Make open() fail (for testing error handling)."""
        self._fail_on_open = fail

    def fail_next_reads(self, count: int) -> None:
        """Make the next `count` reads raise PortReadError."""
        self._read_failures = count


class MockClock(ClockInterface):
    """
    Controllable clock for testing.

    Time can be advanced manually for deterministic testing of
    time-dependent behavior. With auto_advance=True, sleep() moves the
    clock forward instead of only recording the call.
    """

    def __init__(self, start_time: Optional[datetime] = None, auto_advance: bool = False):
        self._current_time = start_time or datetime(2025, 1, 1, 0, 0, 0)
        self._monotonic = 0.0
        self._sleep_calls: List[float] = []
        self._auto_advance = auto_advance

    def now(self) -> datetime:
        return self._current_time

    def timestamp(self) -> float:
        return self._current_time.timestamp()

    def monotonic(self) -> float:
        return self._monotonic

    def sleep(self, seconds: float) -> None:
        self._sleep_calls.append(seconds)
        if self._auto_advance:
            self.advance(seconds)

    # Test helper methods

    def advance(self, seconds: float) -> None:
        """Advance time by specified seconds."""
        self._current_time += timedelta(seconds=seconds)
        self._monotonic += seconds

    def step_wall(self, seconds: float) -> None:
        """Step only the wall clock, like an NTP correction. May be negative."""
        self._current_time += timedelta(seconds=seconds)

    def get_sleep_calls(self) -> List[float]:
        """Get list of all sleep() calls made."""
        return self._sleep_calls.copy()

    def clear_sleep_calls(self) -> None:
        """Clear recorded sleep calls."""
        self._sleep_calls.clear()


class MockLogger(LoggerInterface):
    """
    Logger that captures all messages for testing.
    """

    def __init__(self):
        self._messages: List[tuple] = []

    def debug(self, msg: str) -> None:
        self._messages.append(("DEBUG", msg))

    def info(self, msg: str) -> None:
        self._messages.append(("INFO", msg))

    def warning(self, msg: str) -> None:
        self._messages.append(("WARNING", msg))

    def error(self, msg: str) -> None:
        self._messages.append(("ERROR", msg))

    # Test helper methods

    def get_messages(self, level: Optional[str] = None) -> List[tuple]:
        """Get logged messages, optionally filtered by level."""
        if level:
            return [(lvl, m) for lvl, m in self._messages if lvl == level]
        return self._messages.copy()

    def clear(self) -> None:
        """Clear all logged messages."""
        self._messages.clear()

    def contains(self, substring: str, level: Optional[str] = None) -> bool:
        """Check if any message contains substring."""
        messages = self.get_messages(level)
        return any(substring in m for _, m in messages)
