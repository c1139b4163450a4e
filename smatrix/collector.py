"""
Downstream frame collector.

Bounded buffer between the reader loop and whatever consumes frames. The
reader must never block on a slow consumer, so when the buffer is full the
oldest frame is dropped and counted.
"""

import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

from .classifier import ClassifiedLine
from .interfaces import LoggerInterface

DEFAULT_QUEUE_SIZE = 1000


@dataclass
class CollectorSummary:
    """Counters reported on shutdown."""
    accepted: int
    dropped: int
    pending: int

    def __str__(self) -> str:
        return f"Collected {self.accepted} frames ({self.dropped} dropped, {self.pending} pending)"


class FrameCollector:
    """
    Thread-safe bounded frame buffer with drop-oldest overflow.

    Usage:
        collector = FrameCollector(capacity=1000)
        collector.accept(line)        # reader thread
        frames = collector.drain()    # consumer
    """

    def __init__(self, capacity: int = DEFAULT_QUEUE_SIZE, logger: Optional[LoggerInterface] = None):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._frames: Deque[ClassifiedLine] = deque(maxlen=capacity)
        self._capacity = capacity
        self._logger = logger
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._accepted = 0
        self._dropped = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)

    def accept(self, line: ClassifiedLine) -> None:
        with self._lock:
            if len(self._frames) == self._capacity:
                self._dropped += 1
                if self._logger and self._dropped == 1:
                    self._logger.warning(
                        f"Frame buffer full ({self._capacity}), dropping oldest frames"
                    )
            self._frames.append(line)
            self._accepted += 1
            self._not_empty.notify()

    def drain(self) -> List[ClassifiedLine]:
        """Take every buffered frame, oldest first."""
        with self._lock:
            frames = list(self._frames)
            self._frames.clear()
        return frames

    def get(self, timeout: Optional[float] = None) -> Optional[ClassifiedLine]:
        """Take the oldest frame, waiting up to timeout. None if none arrived."""
        with self._not_empty:
            if not self._not_empty.wait_for(lambda: len(self._frames) > 0, timeout):
                return None
            return self._frames.popleft()

    def summary(self) -> CollectorSummary:
        with self._lock:
            return CollectorSummary(
                accepted=self._accepted,
                dropped=self._dropped,
                pending=len(self._frames),
            )
