"""
Command line entry point for the smatrix exporter.

Usage:
    smatrix-exporter --antenna-usb-device-path /dev/ttyUSB0 --config-path ./config.yaml
    smatrix-exporter --list-ports
    smatrix-exporter --status

Every flag can also be set through its environment variable (shown in --help).
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
from typing import List, Optional

from .config import ExporterSettings, load_config
from .errors import SmatrixError
from .exporter import Exporter
from .implementations import RealSerialPort
from .instance_lock import list_locks

logger = logging.getLogger(__name__)

LOG_FORMATS = ("text", "json")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(level: str, fmt: str) -> None:
    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s [%(name)s] %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def build_parser() -> argparse.ArgumentParser:
    defaults = ExporterSettings.from_env()
    parser = argparse.ArgumentParser(
        prog="smatrix-exporter",
        description="Read and validate Uponor Smatrix RF receiver traffic from a serial antenna",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  smatrix-exporter --antenna-usb-device-path /dev/ttyUSB0
  ANTENNA_USB_DEVICE_PATH=/dev/ttyACM0 CONFIG_PATH=./config.yaml smatrix-exporter
  smatrix-exporter --list-ports
        """,
    )
    parser.add_argument(
        "--antenna-usb-device-path",
        default=defaults.device_path,
        help="Path to usb device connecting 868MHz RF antenna (env ANTENNA_USB_DEVICE_PATH)",
    )
    parser.add_argument(
        "--config-path",
        default=defaults.config_path,
        help="Path to the config.yaml file (env CONFIG_PATH)",
    )
    parser.add_argument(
        "--queue-size",
        type=int,
        default=defaults.queue_size,
        help=f"Frames buffered for downstream consumers (default: {defaults.queue_size})",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "info"),
        choices=["debug", "info", "warning", "error"],
        help="Log level (env LOG_LEVEL, default: info)",
    )
    parser.add_argument(
        "--log-format",
        default=os.environ.get("LOG_FORMAT", "text"),
        choices=LOG_FORMATS,
        help="Log format (env LOG_FORMAT, default: text)",
    )
    parser.add_argument(
        "--list-ports",
        action="store_true",
        help="List available serial ports and exit",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show devices currently supervised by an exporter and exit",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_format)

    if args.list_ports:
        print("Available serial ports:")
        for p in RealSerialPort.list_ports():
            print(f"  {p.device}")
            print(f"    Description: {p.description}")
            print(f"    HWID: {p.hwid}")
        return 0

    if args.status:
        owners = list_locks()
        if not owners:
            print("No smatrix exporter is running")
        for owner in owners:
            print(f"{owner.device}: PID {owner.pid} ({owner.process_name}) since {owner.started}")
        return 0

    settings = ExporterSettings(
        device_path=args.antenna_usb_device_path,
        config_path=args.config_path,
        queue_size=args.queue_size,
    )
    logger.debug("Settings: %s", settings.as_dict())

    try:
        config = load_config(settings.config_path)
        logger.info(
            "Loaded config from %s: location=%r, %d sample config(s)",
            settings.config_path, config.location, len(config.sample_configs),
        )
        exporter = Exporter(settings)
    except SmatrixError as e:
        logger.error("%s", e)
        return 1

    def signal_handler(sig, frame):
        logger.info("Received signal %s", signal.Signals(sig).name)
        exporter.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        exporter.start()
        exporter.run()
    except SmatrixError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
