"""
Decoder boundary.

The exporter stops at classified frames. Turning a frame into a typed
measurement is the job of a FrameDecoder implementation plugged in
downstream; this module only defines that contract and the sample and
measurement shapes it produces.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from .classifier import ClassifiedLine
from .config import Config, SampleConfig

SOURCE = "smatrix-exporter"


@dataclass
class Sample:
    """One measured value, labelled from its SampleConfig."""
    entity_type: str
    entity_name: str
    sample_type: str
    sample_name: str
    metric_type: str
    value: float = 0.0

    @classmethod
    def from_config(cls, sample_config: SampleConfig, value: float = 0.0) -> "Sample":
        """Label a raw value, applying the configured multiplier."""
        return cls(
            entity_type=sample_config.entity_type,
            entity_name=sample_config.entity_name,
            sample_type=sample_config.sample_type,
            sample_name=sample_config.sample_name,
            metric_type=sample_config.metric_type,
            value=value * sample_config.value_multiplier,
        )


@dataclass
class Measurement:
    """A batch of samples taken at one location."""
    id: str
    source: str
    location: str
    samples: List[Sample] = field(default_factory=list)
    measured_at_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def new(cls, config: Config) -> "Measurement":
        return cls(id=str(uuid.uuid4()), source=SOURCE, location=config.location)


class FrameDecoder(ABC):
    """
    Maps a valid frame onto a sample.

    Implementations return None for frames that carry nothing for the
    given sample definition (wrong thermostat, unrelated message code).
    """

    @abstractmethod
    def decode(self, line: ClassifiedLine, sample_config: SampleConfig) -> Optional[Sample]:
        pass


def build_measurement(config: Config, frames: List[ClassifiedLine], decoder: FrameDecoder) -> Measurement:
    """Run every frame through the decoder for every sample definition."""
    measurement = Measurement.new(config)
    for frame in frames:
        for sample_config in config.sample_configs:
            sample = decoder.decode(frame, sample_config)
            if sample is not None:
                measurement.samples.append(sample)
    return measurement
