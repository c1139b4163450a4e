#!/usr/bin/env python3
"""
Per-device instance lock for the smatrix exporter.

Only one exporter may supervise a given serial device. The lock is an
exclusive portalocker lock on a per-device file, with a JSON side file
naming the owner so a refused start can say who holds the device.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, TextIO

import portalocker

from .errors import InstanceLockError
from .interfaces import LoggerInterface

logger = logging.getLogger(__name__)


@dataclass
class LockOwner:
    """Information about the process holding a device."""
    pid: int
    process_name: str
    started: datetime
    device: str
    lock_file: str


class InstanceLock:
    """
    Exclusive lock on one device path.

    Usage:
        lock = InstanceLock("/dev/ttyUSB0")
        lock.acquire()          # raises InstanceLockError if held elsewhere
        ...
        lock.release()

        with InstanceLock("/dev/ttyUSB0"):
            ...
    """

    # None: resolve from SMATRIX_RUN_DIR each time a path is needed
    LOCK_DIR: Optional[str] = None

    def __init__(self, device: str, logger: Optional[LoggerInterface] = None):
        self._device = device
        self._logger = logger
        self._lock_file: Optional[TextIO] = None
        self._lock_path = self.get_lock_path(device)
        self._info_path = self._lock_path + ".info"

    def _log(self, msg: str) -> None:
        if self._logger:
            self._logger.info(msg)
        else:
            logger.info(msg)

    @property
    def is_held(self) -> bool:
        return self._lock_file is not None

    @classmethod
    def lock_dir(cls) -> str:
        if cls.LOCK_DIR:
            return cls.LOCK_DIR
        return os.path.join(os.environ.get("SMATRIX_RUN_DIR", "/tmp"), "smatrix-locks")

    @classmethod
    def get_lock_path(cls, device: str) -> str:
        """Convert device path to lock file path."""
        # /dev/ttyUSB0 -> /tmp/smatrix-locks/_dev_ttyUSB0.lock
        safe_name = device.replace("/", "_").replace("\\", "_")
        return os.path.join(cls.lock_dir(), f"{safe_name}.lock")

    def acquire(self) -> None:
        """Take the lock without waiting. Raises InstanceLockError if it is held."""
        Path(self.lock_dir()).mkdir(parents=True, exist_ok=True)
        lock_file = open(self._lock_path, "a")
        try:
            portalocker.lock(lock_file, portalocker.LOCK_EX | portalocker.LOCK_NB)
        except (portalocker.LockException, OSError) as e:
            lock_file.close()
            owner = self.get_owner()
            if owner:
                raise InstanceLockError(
                    f"{self._device} is already supervised by PID {owner.pid} "
                    f"({owner.process_name}) since {owner.started}"
                ) from e
            raise InstanceLockError(f"{self._device} is locked by another process") from e

        self._lock_file = lock_file
        self._write_owner_info()
        self._log(f"Acquired instance lock for {self._device}")

    def release(self) -> None:
        """Release the lock. Safe to call when not held."""
        if not self._lock_file:
            return
        try:
            os.unlink(self._info_path)
        except OSError:
            pass
        try:
            portalocker.unlock(self._lock_file)
        finally:
            self._lock_file.close()
            self._lock_file = None
        self._log(f"Released instance lock for {self._device}")

    def get_owner(self) -> Optional[LockOwner]:
        """Owner recorded in the info file, or None."""
        return _read_owner(Path(self._info_path))

    def _write_owner_info(self) -> None:
        info = {
            "pid": os.getpid(),
            "process_name": " ".join(sys.argv[:3])[:50] or f"python:{os.getpid()}",
            "started": datetime.now().isoformat(),
            "device": self._device,
        }
        # Atomic write to avoid corrupt JSON on crash.
        tmp_path = f"{self._info_path}.tmp.{os.getpid()}"
        with open(tmp_path, "w") as f:
            json.dump(info, f, indent=2)
        os.replace(tmp_path, self._info_path)

    def __enter__(self) -> "InstanceLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


def _read_owner(info_path: Path) -> Optional[LockOwner]:
    try:
        info = json.loads(info_path.read_text(encoding="utf-8"))
        return LockOwner(
            pid=int(info["pid"]),
            process_name=info["process_name"],
            started=datetime.fromisoformat(info["started"]),
            device=info["device"],
            lock_file=str(info_path)[: -len(".info")],
        )
    except FileNotFoundError:
        return None
    except (OSError, ValueError, KeyError) as e:
        logger.warning("Ignoring unreadable lock info %s: %s", info_path, e)
        return None


def list_locks() -> List[LockOwner]:
    """Owners of all currently recorded device locks."""
    lock_dir = Path(InstanceLock.lock_dir())
    if not lock_dir.exists():
        return []
    owners = []
    for info_path in sorted(lock_dir.glob("*.lock.info")):
        owner = _read_owner(info_path)
        if owner:
            owners.append(owner)
    return owners
