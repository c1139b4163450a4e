"""
Tests for smatrix/reader.py: the reader loop state machine.

Covers classification and forwarding, read-error resets, end-of-stream
handling and cooperative teardown.
"""

import threading
import time

import pytest

from smatrix.classifier import Verdict
from smatrix.collector import FrameCollector
from smatrix.errors import DeviceOpenError
from smatrix.gate import Gate
from smatrix.mocks import MockClock, MockLogger, MockSerialPort
from smatrix.port_session import MAX_LINE_BYTES, PortSession
from smatrix.reader import LivenessClock, ReaderLoop, ReaderState, TeardownSignal

FRAME = "045  I --- 04:123456 --:------ --:------ 1F09 003"


class Harness:
    """Reader loop wired to mocks."""

    def __init__(self, port=None, max_line_bytes=MAX_LINE_BYTES, empty_read_delay=0.0):
        self.port = port or MockSerialPort(empty_read_delay=empty_read_delay)
        self.clock = MockClock()
        self.logger = MockLogger()
        self.gate = Gate()
        self.session = PortSession(
            self.port, self.clock, self.logger, self.gate, "/dev/ttyUSB0",
            max_line_bytes=max_line_bytes,
        )
        self.liveness = LivenessClock(self.clock)
        self.teardown = TeardownSignal()
        self.collector = FrameCollector(capacity=10)
        self.reader = ReaderLoop(
            session=self.session,
            gate=self.gate,
            liveness=self.liveness,
            teardown=self.teardown,
            sink=self.collector,
            clock=self.clock,
            logger=self.logger,
        )
        self.session.open()


@pytest.fixture
def h():
    return Harness()


class TestTeardownSignal:
    def test_one_shot_and_idempotent(self):
        signal = TeardownSignal()
        assert not signal.is_set()
        signal.set()
        signal.set()
        assert signal.is_set()
        assert signal.wait(0) is True


class TestLivenessClock:
    def test_starts_at_creation(self):
        clock = MockClock()
        liveness = LivenessClock(clock)
        assert liveness.last_seen == clock.monotonic()
        clock.advance(10)
        assert liveness.age() == 10

    def test_wall_clock_step_back_ignored(self):
        clock = MockClock()
        liveness = LivenessClock(clock)
        clock.advance(10)
        clock.step_wall(-3600)
        liveness.touch()
        clock.advance(30)
        assert liveness.age() == 30

    def test_wall_clock_step_forward_ignored(self):
        clock = MockClock()
        liveness = LivenessClock(clock)
        clock.step_wall(3600)
        assert liveness.age() == 0


class TestLines:
    def test_valid_frame_forwarded(self, h):
        h.port.inject_line(FRAME)

        assert h.reader.step() is True
        frames = h.collector.drain()
        assert [f.text for f in frames] == [FRAME]
        assert frames[0].verdict is Verdict.VALID_FRAME
        assert h.reader.frames_forwarded == 1
        assert h.logger.contains(f"evohome: {FRAME}", level="DEBUG")

    def test_noise_logged_not_forwarded(self, h):
        h.port.inject_line("some short ERR line")

        h.reader.step()
        assert h.collector.drain() == []
        assert h.logger.contains("some short ERR line", level="INFO")
        assert h.reader.lines_read == 1

    def test_successful_read_advances_liveness(self, h):
        h.clock.advance(90)
        h.port.inject_line("noise")

        h.reader.step()
        assert h.liveness.age() == 0

    def test_oversized_fragment_warns_and_keeps_liveness(self):
        h = Harness(max_line_bytes=16)
        h.clock.advance(30)
        h.port.inject_line("x" * 40)

        h.reader.step()
        assert h.logger.contains("too long for buffer", level="WARNING")
        assert h.liveness.age() == 30
        assert h.collector.drain() == []

    def test_end_of_stream_is_benign(self, h):
        assert h.reader.step() is True
        assert h.reader.state is ReaderState.RUNNING
        assert h.port.open_count == 1
        assert h.logger.get_messages("WARNING") == []


class TestReadErrors:
    def test_read_error_resets_port(self, h):
        h.port.fail_next_reads(1)

        assert h.reader.step() is True
        assert h.port.close_count == 1
        assert h.port.open_count == 2
        assert h.reader.error_resets == 1
        assert h.reader.state is ReaderState.RUNNING
        assert h.logger.contains("Error reading from serial port", level="WARNING")

    def test_reading_resumes_after_reset(self, h):
        h.port.fail_next_reads(1)
        h.port.inject_line(FRAME)

        h.reader.step()
        h.reader.step()
        assert len(h.collector.drain()) == 1

    def test_skipped_reset_not_counted(self, h):
        h.session.release()

        assert h.reader.step() is True
        assert h.reader.error_resets == 0
        assert h.session.reset_count == 0
        assert h.port.open_count == 1

    def test_repeated_errors_reset_every_time(self, h):
        h.port.fail_next_reads(3)
        for _ in range(3):
            h.reader.step()
        assert h.reader.error_resets == 3

    def test_reopen_failure_is_fatal(self, h):
        h.port.fail_next_reads(1)
        h.port.set_fail_on_open(True)

        with pytest.raises(DeviceOpenError):
            h.reader.step()
        assert not h.gate.is_held


class TestTeardown:
    def test_teardown_checked_before_acting_on_result(self, h):
        h.port.inject_line(FRAME)
        h.teardown.set()

        assert h.reader.step() is False
        assert h.reader.state is ReaderState.TORN_DOWN
        assert h.collector.drain() == []
        assert h.port.close_count == 1

    def test_teardown_skips_error_reset(self, h):
        h.port.fail_next_reads(1)
        h.teardown.set()

        h.reader.step()
        assert h.port.open_count == 1
        assert h.reader.error_resets == 0

    def test_no_reads_after_teardown(self, h):
        h.teardown.set()
        h.reader.run()
        reads = h.port.read_count

        assert h.reader.step() is False
        h.reader.run()
        assert h.port.read_count == reads
        assert h.port.close_count == 1

    def test_run_exits_from_another_thread(self):
        h = Harness(empty_read_delay=0.01)
        for _ in range(3):
            h.port.inject_line(FRAME)

        t = threading.Thread(target=h.reader.run)
        t.start()
        deadline = time.time() + 2.0
        while h.reader.frames_forwarded < 3 and time.time() < deadline:
            time.sleep(0.01)

        h.teardown.set()
        t.join(2.0)

        assert not t.is_alive()
        assert h.reader.state is ReaderState.TORN_DOWN
        assert h.reader.frames_forwarded == 3
        assert h.port.close_count == 1
        assert not h.port.is_open()


class TestMutualExclusion:
    def test_reset_never_overlaps_read(self):
        """A concurrent reset waits for the read in flight and the next read waits for the reset."""
        overlaps = []
        in_reset = threading.Event()

        class WatchingPort(MockSerialPort):
            def read_line(self, max_bytes):
                if in_reset.is_set():
                    overlaps.append("read during reset")
                time.sleep(0.002)
                return super().read_line(max_bytes)

            def close(self):
                in_reset.set()
                time.sleep(0.005)
                super().close()

            def open(self, port, settings):
                super().open(port, settings)
                in_reset.clear()

        h = Harness(port=WatchingPort())
        session = h.session

        reader = threading.Thread(target=h.reader.run)
        reader.start()
        for _ in range(10):
            session.reset()
        h.teardown.set()
        reader.join(2.0)

        assert not reader.is_alive()
        assert overlaps == []
        assert session.reset_count == 10
