"""
Pause gate guarding serial port maintenance.

A port reset (close, cool-down, reopen) must never overlap a read. The gate
gives one maintenance holder exclusive access at a time while readers wait
for it to clear. It is entered from two threads, the watchdog and the
reader's own error path, and is not reentrant from the same thread.

Usage:
    gate = Gate()

    # maintenance side (watchdog or reader error path)
    with gate.exclusive():
        session.close()
        session.open()

    # reader side
    with gate.reading():
        line = session.read_line()
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional


class Gate:
    """
    Single-writer / multi-reader pause switch.

    Waiting maintenance holders take priority over new readers, so a
    steady stream of reads cannot starve a reset.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._holder: Optional[int] = None
        self._writers_waiting = 0
        self._readers = 0

    @property
    def is_held(self) -> bool:
        """True while a maintenance holder is active."""
        return self._holder is not None

    @property
    def active_readers(self) -> int:
        return self._readers

    def _is_clear(self) -> bool:
        return self._holder is None and self._writers_waiting == 0

    def acquire_exclusive(self) -> None:
        """
        Become the maintenance holder.

        Blocks (never fails) while another holder is active or a read is in
        flight. Raises RuntimeError if the calling thread already holds the
        gate.
        """
        me = threading.get_ident()
        with self._cond:
            if self._holder == me:
                raise RuntimeError("Gate is not reentrant from the holding thread")
            self._writers_waiting += 1
            try:
                while self._holder is not None or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._holder = me

    def release_exclusive(self) -> None:
        """Give up maintenance and wake every waiter. Only the holding thread may release."""
        with self._cond:
            if self._holder is None:
                raise RuntimeError("Gate released without an exclusive holder")
            if self._holder != threading.get_ident():
                raise RuntimeError("Gate released by a thread that does not hold it")
            self._holder = None
            self._cond.notify_all()

    def await_clear(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no maintenance holder is active or waiting.

        Returns False if the timeout elapsed first.
        """
        with self._cond:
            return self._cond.wait_for(self._is_clear, timeout)

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        self.acquire_exclusive()
        try:
            yield
        finally:
            self.release_exclusive()

    @contextmanager
    def reading(self) -> Iterator[None]:
        """Shared section for one read: waits for the gate, then holds off maintenance."""
        with self._cond:
            self._cond.wait_for(self._is_clear)
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()
