"""
Configuration for the smatrix exporter.

Two layers:
- Config / SampleConfig: the YAML file describing location and sample
  definitions (strict, unknown keys are rejected).
- ExporterSettings: runtime settings from CLI flags and environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List

import yaml

from .collector import DEFAULT_QUEUE_SIZE
from .errors import ConfigurationError
from .port_session import COOLDOWN_SECONDS
from .watchdog import STALE_AFTER_SECONDS, WATCHDOG_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_PATH = "/dev/ttyUSB0"
DEFAULT_CONFIG_PATH = "/configs/config.yaml"


@dataclass
class SampleConfig:
    """One sample definition, mapped onto a decoded frame later on."""
    entity_type: str = ""
    entity_name: str = ""
    sample_type: str = ""
    sample_name: str = ""
    metric_type: str = ""
    value_multiplier: float = 1.0
    thermostat_id: str = ""

    _YAML_KEYS = {
        "entityType": "entity_type",
        "entityName": "entity_name",
        "sampleType": "sample_type",
        "sampleName": "sample_name",
        "metricType": "metric_type",
        "valueMultiplier": "value_multiplier",
        "thermostatID": "thermostat_id",
    }

    def set_defaults(self) -> None:
        if not self.value_multiplier:
            self.value_multiplier = 1.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SampleConfig":
        kwargs = _map_keys(data, cls._YAML_KEYS, "sampleConfigs entry")
        if "value_multiplier" in kwargs:
            try:
                kwargs["value_multiplier"] = float(kwargs["value_multiplier"] or 0)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"valueMultiplier must be a number, got {kwargs['value_multiplier']!r}"
                )
        for key in kwargs:
            if key != "value_multiplier" and kwargs[key] is not None:
                kwargs[key] = str(kwargs[key])
        sample = cls(**kwargs)
        sample.set_defaults()
        return sample


@dataclass
class Config:
    """Contents of config.yaml."""
    location: str = ""
    sample_configs: List[SampleConfig] = field(default_factory=list)

    _YAML_KEYS = {
        "location": "location",
        "sampleConfigs": "sample_configs",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        kwargs = _map_keys(data, cls._YAML_KEYS, "config")
        samples = kwargs.pop("sample_configs", None) or []
        if not isinstance(samples, list):
            raise ConfigurationError("sampleConfigs must be a list")
        return cls(
            location=str(kwargs.get("location") or ""),
            sample_configs=[SampleConfig.from_dict(s) for s in samples],
        )


def _map_keys(data: Any, keys: Dict[str, str], where: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigurationError(f"{where} must be a mapping, got {type(data).__name__}")
    unknown = sorted(set(data) - set(keys))
    if unknown:
        raise ConfigurationError(f"Unknown key(s) in {where}: {', '.join(map(str, unknown))}")
    return {keys[k]: v for k, v in data.items()}


def load_config(path: str) -> Config:
    """
    Read and validate config.yaml.

    Scalars are loaded as their source text (BaseLoader), so an id such as
    `thermostatID: 0123` stays "0123" instead of resolving to an integer.
    Numeric fields are converted afterwards.
    """
    logger.debug("Reading %s file...", path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.load(f, Loader=yaml.BaseLoader)
    except OSError as e:
        raise ConfigurationError(f"Failed reading config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    return Config.from_dict(data or {})


@dataclass
class ExporterSettings:
    """Runtime settings for one exporter process."""
    device_path: str = DEFAULT_DEVICE_PATH
    config_path: str = DEFAULT_CONFIG_PATH
    queue_size: int = DEFAULT_QUEUE_SIZE
    watchdog_interval: float = WATCHDOG_INTERVAL_SECONDS
    stale_after: float = STALE_AFTER_SECONDS
    cooldown: float = COOLDOWN_SECONDS

    def validate(self) -> None:
        if not self.device_path:
            raise ConfigurationError("Please set the usb device path for the antenna")
        if self.queue_size < 1:
            raise ConfigurationError(f"queue size must be positive, got {self.queue_size}")

    @classmethod
    def from_env(cls, environ: Dict[str, str] = None) -> "ExporterSettings":
        """Settings from ANTENNA_USB_DEVICE_PATH / CONFIG_PATH, defaults otherwise."""
        env = os.environ if environ is None else environ
        return cls(
            device_path=env.get("ANTENNA_USB_DEVICE_PATH", DEFAULT_DEVICE_PATH),
            config_path=env.get("CONFIG_PATH", DEFAULT_CONFIG_PATH),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
