"""
Exception types for the smatrix exporter.

Only the fatal errors (ConfigurationError, DeviceOpenError, InstanceLockError)
are meant to reach the process boundary. PortReadError and EndOfStream are
handled inside the reader loop.
"""


class SmatrixError(Exception):
    """Base class for all exporter errors."""


class ConfigurationError(SmatrixError):
    """Configuration is missing, malformed or contains unknown keys."""


class DeviceOpenError(SmatrixError):
    """The serial device could not be opened. Not recoverable."""

    def __init__(self, device: str, reason: str = ""):
        self.device = device
        self.reason = reason
        msg = f"Failed opening serial device {device}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PortReadError(SmatrixError):
    """A read from the serial device failed. Recovered by resetting the port."""


class EndOfStream(SmatrixError):
    """A read returned no data before the read timeout elapsed."""


class InstanceLockError(SmatrixError):
    """Another exporter process already supervises this device."""
