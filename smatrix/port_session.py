"""
Port session for the RF receiver link.

Owns the open serial handle. Opening uses the fixed transport settings,
closing always waits a cool-down so the USB serial driver settles before
the next open, and resets run with the gate held exclusively.

A device that cannot be opened is fatal: DeviceOpenError is raised and
never retried here.
"""

import threading
from typing import Optional, Tuple

from .errors import ConfigurationError, EndOfStream
from .gate import Gate
from .interfaces import SerialPortInterface, ClockInterface, LoggerInterface, TransportSettings

COOLDOWN_SECONDS = 5.0
MAX_LINE_BYTES = 4096


class PortSession:
    """
    Manages the single serial handle of one supervised device.

    Usage:
        session = PortSession(serial_port, clock, logger, gate, "/dev/ttyUSB0")
        session.open()
        data, is_prefix = session.read_line()
        session.reset()      # from watchdog or read-error path
        session.release()    # final close at teardown
    """

    def __init__(
        self,
        serial_port: SerialPortInterface,
        clock: ClockInterface,
        logger: LoggerInterface,
        gate: Gate,
        device_path: str,
        settings: Optional[TransportSettings] = None,
        cooldown: float = COOLDOWN_SECONDS,
        max_line_bytes: int = MAX_LINE_BYTES,
    ):
        if not device_path:
            raise ConfigurationError("Please set the usb device path for the antenna")
        self._serial = serial_port
        self._clock = clock
        self._logger = logger
        self._gate = gate
        self._device_path = device_path
        self._settings = settings or TransportSettings()
        self._cooldown = cooldown
        self._max_line_bytes = max_line_bytes
        self._reset_count = 0
        self._released = False
        self._release_lock = threading.Lock()

    @property
    def device_path(self) -> str:
        return self._device_path

    @property
    def settings(self) -> TransportSettings:
        return self._settings

    @property
    def reset_count(self) -> int:
        """Number of completed resets."""
        return self._reset_count

    @property
    def released(self) -> bool:
        return self._released

    def is_open(self) -> bool:
        return self._serial.is_open()

    def open(self) -> None:
        """Open the device. Raises DeviceOpenError if it cannot be opened."""
        s = self._settings
        self._logger.debug(
            f"Opening {self._device_path} at {s.baud} baud "
            f"({s.bytesize}{s.parity}{s.stopbits}, timeout {s.timeout}s)"
        )
        self._serial.open(self._device_path, s)
        self._logger.info(f"Opened serial device {self._device_path}")

    def close(self) -> None:
        """Close the device, then wait out the cool-down."""
        self._serial.close()
        self._logger.debug(f"Closed {self._device_path}, cooling down for {self._cooldown}s")
        self._clock.sleep(self._cooldown)

    def reset(self) -> bool:
        """
        Close and reopen the device while holding the gate exclusively.

        Returns False without touching the port once the session has been
        released at teardown. DeviceOpenError propagates.
        """
        with self._gate.exclusive():
            if self._released:
                self._logger.info(f"Skipping reset of {self._device_path}, session already released")
                return False
            self._logger.info(f"Resetting serial port {self._device_path}...")
            self.close()
            self.open()
            self._reset_count += 1
        return True

    def release(self) -> bool:
        """
        Final close at teardown, gate-protected. Idempotent.

        Returns True only for the call that actually closed the port.
        """
        with self._release_lock:
            if self._released:
                return False
            self._released = True
        with self._gate.exclusive():
            self.close()
        self._logger.info(f"Released serial device {self._device_path}")
        return True

    def read_line(self) -> Tuple[bytes, bool]:
        """
        Read one line.

        Returns (data, is_prefix) with line terminators stripped; is_prefix
        is True when the line did not fit max_line_bytes and the rest will
        follow in later reads. Raises EndOfStream when the read timed out
        with no data and PortReadError on I/O failure.
        """
        data = self._serial.read_line(self._max_line_bytes)
        if not data:
            raise EndOfStream(f"no data from {self._device_path}")
        if data.endswith(b"\n"):
            return data.rstrip(b"\r\n"), False
        return data, len(data) >= self._max_line_bytes
