#!/usr/bin/env python3
"""
smatrix exporter - serial link supervisor

Ties the supervision components together for one receiver:

- InstanceLock: one exporter per device
- PortSession: owns the serial handle (open / close with cool-down / reset)
- Watchdog: resets the port when the link goes quiet
- ReaderLoop: reads, classifies and forwards frames until teardown
- FrameCollector: bounded buffer for downstream consumers
"""

from typing import Optional

from .collector import FrameCollector
from .config import ExporterSettings
from .errors import DeviceOpenError
from .gate import Gate
from .implementations import RealSerialPort, RealClock, StdLogger
from .instance_lock import InstanceLock
from .interfaces import SerialPortInterface, ClockInterface, LoggerInterface
from .port_session import PortSession
from .reader import LivenessClock, ReaderLoop, ReaderState, TeardownSignal
from .watchdog import Watchdog


class Exporter:
    """
    Supervises one receiver from start to teardown.

    Usage:
        exporter = Exporter(settings)
        exporter.start()      # lock, open port, start watchdog
        exporter.run()        # blocks until stop() is called
        exporter.stop()       # from a signal handler
    """

    def __init__(
        self,
        settings: ExporterSettings,
        serial_port: Optional[SerialPortInterface] = None,
        clock: Optional[ClockInterface] = None,
        logger: Optional[LoggerInterface] = None,
        collector: Optional[FrameCollector] = None,
        instance_lock: Optional[InstanceLock] = None,
        start_watchdog: bool = True,
    ):
        settings.validate()
        self._settings = settings
        self._serial = serial_port or RealSerialPort()
        self._clock = clock or RealClock()
        self._logger = logger or StdLogger("exporter")
        self._start_watchdog = start_watchdog
        self._started = False

        self._gate = Gate()
        self._teardown = TeardownSignal()
        self._liveness = LivenessClock(self._clock)
        self._collector = collector or FrameCollector(settings.queue_size, logger=self._logger)
        self._instance_lock = instance_lock or InstanceLock(settings.device_path, logger=self._logger)

        self._session = PortSession(
            serial_port=self._serial,
            clock=self._clock,
            logger=logger or StdLogger("port"),
            gate=self._gate,
            device_path=settings.device_path,
            cooldown=settings.cooldown,
        )
        self._watchdog = Watchdog(
            session=self._session,
            liveness=self._liveness,
            clock=self._clock,
            logger=logger or StdLogger("watchdog"),
            teardown=self._teardown,
            interval=settings.watchdog_interval,
            stale_after=settings.stale_after,
            on_fatal=self._on_watchdog_fatal,
        )
        self._reader = ReaderLoop(
            session=self._session,
            gate=self._gate,
            liveness=self._liveness,
            teardown=self._teardown,
            sink=self._collector,
            clock=self._clock,
            logger=logger or StdLogger("reader"),
        )

    @property
    def collector(self) -> FrameCollector:
        return self._collector

    @property
    def session(self) -> PortSession:
        return self._session

    @property
    def reader(self) -> ReaderLoop:
        return self._reader

    @property
    def watchdog(self) -> Watchdog:
        return self._watchdog

    @property
    def teardown(self) -> TeardownSignal:
        return self._teardown

    def _on_watchdog_fatal(self, error: DeviceOpenError) -> None:
        self._logger.error(f"Serial device lost, shutting down: {error}")
        self._teardown.set()

    def start(self) -> None:
        """
        Lock the device, open it and start the watchdog.

        Raises InstanceLockError or DeviceOpenError; both are fatal.
        """
        self._logger.info(f"Starting smatrix exporter on {self._settings.device_path}")
        self._instance_lock.acquire()
        try:
            self._session.open()
        except DeviceOpenError:
            self._instance_lock.release()
            raise
        self._started = True
        if self._start_watchdog:
            self._watchdog.start()

    def run(self) -> None:
        """
        Read until teardown, then release the device.

        Re-raises a fatal error from the reader or the watchdog.
        """
        if not self._started:
            raise RuntimeError("Exporter.run() called before start()")
        try:
            self._reader.run()
        finally:
            if self._reader.state is not ReaderState.TORN_DOWN:
                self._session.release()
            self._instance_lock.release()
            self._logger.info(str(self._collector.summary()))
        if self._watchdog.error:
            raise self._watchdog.error
        self._logger.info("Exporter stopped")

    def stop(self) -> None:
        """Request teardown. The reader exits after its current read returns."""
        if not self._teardown.is_set():
            self._logger.info("Stopping exporter...")
        self._teardown.set()
