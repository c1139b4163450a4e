"""Shared pytest configuration for smatrix tests."""

import pytest

from smatrix.gate import Gate
from smatrix.instance_lock import InstanceLock
from smatrix.mocks import MockSerialPort, MockClock, MockLogger
from smatrix.port_session import PortSession


def pytest_addoption(parser):
    parser.addoption(
        "--hw",
        action="store_true",
        default=False,
        help="Run hardware-in-the-loop tests (requires the RF antenna connected)",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "hw: requires the RF antenna on a serial port")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--hw"):
        return
    skip_hw = pytest.mark.skip(reason="needs --hw and an antenna attached")
    for item in items:
        if "hw" in item.keywords:
            item.add_marker(skip_hw)


@pytest.fixture(autouse=True)
def isolate_lock_dir(tmp_path, monkeypatch):
    """Redirect lock dir to tmp_path for every test."""
    lock_dir = str(tmp_path / "smatrix-locks")
    monkeypatch.setattr(InstanceLock, "LOCK_DIR", lock_dir)
    return lock_dir


@pytest.fixture
def port():
    return MockSerialPort()


@pytest.fixture
def clock():
    return MockClock()


@pytest.fixture
def logger():
    return MockLogger()


@pytest.fixture
def gate():
    return Gate()


@pytest.fixture
def session(port, clock, logger, gate):
    return PortSession(
        serial_port=port,
        clock=clock,
        logger=logger,
        gate=gate,
        device_path="/dev/ttyUSB0",
    )
