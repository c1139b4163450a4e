"""
Liveness watchdog for the serial link.

The receiver sometimes stops emitting lines without the read failing. The
watchdog wakes on a jittered interval, and when no line arrived for longer
than the staleness threshold it resets the port through the gate.

Jitter keeps a fleet of exporters from resetting their receivers in lockstep.
"""

import random
import threading
from typing import Callable, Optional

from .errors import DeviceOpenError
from .interfaces import ClockInterface, LoggerInterface
from .port_session import PortSession
from .reader import LivenessClock, TeardownSignal

WATCHDOG_INTERVAL_SECONDS = 120
STALE_AFTER_SECONDS = 120
JITTER_PERCENTAGE = 25


def apply_jitter(value: float, percentage: int = JITTER_PERCENTAGE,
                 rng: Optional[random.Random] = None) -> float:
    """Return value perturbed uniformly within +/- percentage of itself."""
    deviation = value * percentage / 100.0
    return (rng or random).uniform(value - deviation, value + deviation)


class Watchdog:
    """
    Periodic staleness check that resets the port when the link goes quiet.

    Usage:
        watchdog = Watchdog(session, liveness, clock, logger, teardown=teardown)
        watchdog.start()          # daemon thread
        ...
        if watchdog.error:        # reset failed, device gone
            raise watchdog.error
    """

    def __init__(
        self,
        session: PortSession,
        liveness: LivenessClock,
        clock: ClockInterface,
        logger: LoggerInterface,
        teardown: Optional[TeardownSignal] = None,
        interval: float = WATCHDOG_INTERVAL_SECONDS,
        stale_after: float = STALE_AFTER_SECONDS,
        jitter_percentage: int = JITTER_PERCENTAGE,
        rng: Optional[random.Random] = None,
        on_fatal: Optional[Callable[[DeviceOpenError], None]] = None,
    ):
        self._session = session
        self._liveness = liveness
        self._clock = clock
        self._logger = logger
        self._teardown = teardown
        self._interval = interval
        self._stale_after = stale_after
        self._jitter_percentage = jitter_percentage
        self._rng = rng
        self._on_fatal = on_fatal
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[DeviceOpenError] = None
        self._reset_count = 0

    @property
    def reset_count(self) -> int:
        """Number of resets this watchdog triggered."""
        return self._reset_count

    @property
    def error(self) -> Optional[DeviceOpenError]:
        """Fatal reset failure, if one ended the watchdog."""
        return self._error

    def next_interval(self) -> float:
        return apply_jitter(self._interval, self._jitter_percentage, self._rng)

    def check(self) -> bool:
        """Reset the port if the link is stale. Returns True if a reset ran."""
        if self._teardown and self._teardown.is_set():
            return False
        age = self._liveness.age()
        if age <= self._stale_after:
            return False

        self._logger.info(
            f"Received last message {age:.0f}s ago (more than {self._stale_after:.0f}s), "
            f"resetting serial port..."
        )
        if self._session.reset():
            self._reset_count += 1
            return True
        return False

    def run(self) -> None:
        """Check forever on a jittered interval. Only teardown ends the loop."""
        while not (self._teardown and self._teardown.is_set()):
            self._clock.sleep(self.next_interval())
            self.check()

    def start(self) -> None:
        """Run the watchdog on a daemon thread."""
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run_guarded, name="smatrix-watchdog", daemon=True)
        self._thread.start()

    def _run_guarded(self) -> None:
        try:
            self.run()
        except DeviceOpenError as e:
            self._error = e
            self._logger.error(f"Watchdog reset failed: {e}")
            if self._on_fatal:
                self._on_fatal(e)
