"""
Real implementations of interfaces for production use.

These classes wrap actual system resources (serial ports, wall clock,
stdlib logging) and implement the abstract interfaces.
"""

from typing import Optional, List
from datetime import datetime
import logging
import time

import serial
import serial.rs485
import serial.tools.list_ports

from .errors import DeviceOpenError, PortReadError
from .interfaces import (
    SerialPortInterface, ClockInterface, LoggerInterface,
    PortInfo, TransportSettings,
)


class RealSerialPort(SerialPortInterface):
    """
    Real serial port implementation using pyserial.
    """

    def __init__(self):
        self._serial: Optional[serial.Serial] = None

    def open(self, port: str, settings: TransportSettings) -> None:
        ser = serial.Serial()
        ser.port = port
        ser.baudrate = settings.baud
        ser.bytesize = settings.bytesize
        ser.stopbits = settings.stopbits
        ser.parity = settings.parity
        ser.timeout = settings.timeout
        ser.inter_byte_timeout = settings.timeout
        ser.rtscts = False
        ser.dsrdtr = False
        ser.rs485_mode = serial.rs485.RS485Settings() if settings.rs485 else None
        try:
            ser.open()
        except (serial.SerialException, ValueError, OSError) as e:
            self._serial = None
            raise DeviceOpenError(port, str(e)) from e
        self._serial = ser

    def close(self) -> None:
        if self._serial:
            try:
                self._serial.close()
            except (serial.SerialException, OSError):
                pass
            self._serial = None

    def is_open(self) -> bool:
        if self._serial is None:
            return False
        return self._serial.is_open

    def read_line(self, max_bytes: int) -> bytes:
        if not self._serial:
            raise PortReadError("serial port is not open")
        try:
            return self._serial.readline(max_bytes)
        except (serial.SerialException, OSError) as e:
            raise PortReadError(str(e)) from e

    @staticmethod
    def list_ports() -> List[PortInfo]:
        ports = []
        for p in serial.tools.list_ports.comports():
            ports.append(PortInfo(
                device=p.device,
                description=p.description or "",
                hwid=p.hwid or "",
            ))
        return ports


class RealClock(ClockInterface):
    """
    Real clock implementation using system time.
    """

    def now(self) -> datetime:
        return datetime.now()

    def timestamp(self) -> float:
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class StdLogger(LoggerInterface):
    """
    Logger implementation forwarding to the stdlib logging tree.

    Every component gets its own child of the "smatrix" logger so levels
    can be tuned per component.
    """

    def __init__(self, name: str = "exporter"):
        self._logger = logging.getLogger(f"smatrix.{name}")

    def debug(self, msg: str) -> None:
        self._logger.debug(msg)

    def info(self, msg: str) -> None:
        self._logger.info(msg)

    def warning(self, msg: str) -> None:
        self._logger.warning(msg)

    def error(self, msg: str) -> None:
        self._logger.error(msg)
