"""
Reader loop for the RF receiver link.

Pulls lines from the port session, feeds the liveness clock, classifies
each line and forwards frames to the collector. Read faults reset the port;
a teardown signal ends the loop after the read in flight returns, so
teardown latency is bounded by the read timeout.
"""

import threading
from enum import Enum
from typing import Optional, Protocol

from .classifier import ClassifiedLine, Verdict, classify, decode_line, log_classified
from .errors import EndOfStream, PortReadError
from .gate import Gate
from .interfaces import ClockInterface, LoggerInterface
from .port_session import PortSession


class ReaderState(Enum):
    """Reader loop states. TORN_DOWN is terminal."""
    RUNNING = "running"
    AWAITING_GATE = "awaiting_gate"
    RESETTING_ON_ERROR = "resetting_on_error"
    TORN_DOWN = "torn_down"


class FrameSink(Protocol):
    """Downstream consumer of valid frames."""

    def accept(self, line: ClassifiedLine) -> None:
        ...


class TeardownSignal:
    """One-shot shutdown flag. Once set it stays set."""

    def __init__(self):
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class LivenessClock:
    """
    Time of the last successfully received line, on the monotonic clock.

    Written only by the reader, read lock-free by the watchdog; a stale
    read there only delays a reset by one watchdog period. Wall clock
    steps do not move it.
    """

    def __init__(self, clock: ClockInterface):
        self._clock = clock
        self._last_seen = clock.monotonic()

    @property
    def last_seen(self) -> float:
        return self._last_seen

    def touch(self) -> None:
        now = self._clock.monotonic()
        if now > self._last_seen:
            self._last_seen = now

    def age(self) -> float:
        """Seconds since the last received line."""
        return self._clock.monotonic() - self._last_seen


class ReaderLoop:
    """
    Control loop reading one supervised device until teardown.

    Usage:
        reader = ReaderLoop(session, gate, liveness, teardown, collector, clock, logger)
        reader.run()   # returns once teardown is observed
    """

    def __init__(
        self,
        session: PortSession,
        gate: Gate,
        liveness: LivenessClock,
        teardown: TeardownSignal,
        sink: FrameSink,
        clock: ClockInterface,
        logger: LoggerInterface,
    ):
        self._session = session
        self._gate = gate
        self._liveness = liveness
        self._teardown = teardown
        self._sink = sink
        self._clock = clock
        self._logger = logger
        self._state = ReaderState.RUNNING
        self._lines_read = 0
        self._frames_forwarded = 0
        self._error_resets = 0

    @property
    def state(self) -> ReaderState:
        return self._state

    @property
    def lines_read(self) -> int:
        return self._lines_read

    @property
    def frames_forwarded(self) -> int:
        return self._frames_forwarded

    @property
    def error_resets(self) -> int:
        return self._error_resets

    def run(self) -> None:
        """Run until teardown. DeviceOpenError from a reset propagates."""
        while self.step():
            pass

    def step(self) -> bool:
        """One read cycle. Returns False once the loop is torn down."""
        if self._state is ReaderState.TORN_DOWN:
            return False

        self._state = ReaderState.AWAITING_GATE
        data, is_prefix, error = b"", False, None
        with self._gate.reading():
            self._state = ReaderState.RUNNING
            try:
                data, is_prefix = self._session.read_line()
            except (EndOfStream, PortReadError) as e:
                error = e

        if self._teardown.is_set():
            self._tear_down()
            return False

        if isinstance(error, PortReadError):
            self._logger.warning(f"Error reading from serial port, resetting port...: {error}")
            self._state = ReaderState.RESETTING_ON_ERROR
            if self._session.reset():
                self._error_resets += 1
            self._state = ReaderState.RUNNING
        elif error is None:
            self._handle_line(data, is_prefix)
        return True

    def _handle_line(self, data: bytes, is_prefix: bool) -> None:
        if not is_prefix:
            self._liveness.touch()
        self._lines_read += 1

        line = ClassifiedLine(
            text=decode_line(data),
            verdict=classify(data, is_prefix),
            received_at=self._clock.timestamp(),
        )
        log_classified(self._logger, line)
        if line.verdict is Verdict.VALID_FRAME:
            self._sink.accept(line)
            self._frames_forwarded += 1

    def _tear_down(self) -> None:
        self._state = ReaderState.TORN_DOWN
        self._logger.info("Teardown requested, closing serial port")
        self._session.release()
