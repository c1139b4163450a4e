"""Tests for smatrix/decoder.py: decoder boundary and sample shapes."""

from typing import Optional

import pytest

from smatrix.classifier import ClassifiedLine, Verdict
from smatrix.config import Config, SampleConfig
from smatrix.decoder import FrameDecoder, Measurement, Sample, SOURCE, build_measurement

LIVING_ROOM = SampleConfig(
    entity_type="ENTITY_TYPE_ZONE",
    entity_name="Uponor Smatrix",
    sample_type="SAMPLE_TYPE_TEMPERATURE",
    sample_name="Living room",
    metric_type="METRIC_TYPE_GAUGE",
    value_multiplier=0.01,
    thermostat_id="04:123456",
)


class TemperatureDecoder(FrameDecoder):
    """Reads the last payload field of 30C9 frames as hundredths of a degree."""

    def decode(self, line: ClassifiedLine, sample_config: SampleConfig) -> Optional[Sample]:
        fields = line.text.split()
        if fields[3] != sample_config.thermostat_id or fields[6] != "30C9":
            return None
        return Sample.from_config(sample_config, float(int(fields[-1][-4:], 16)))


def frame(text):
    return ClassifiedLine(text=text, verdict=Verdict.VALID_FRAME, received_at=0.0)


def test_sample_from_config_applies_multiplier():
    sample = Sample.from_config(LIVING_ROOM, 2150)

    assert sample.entity_name == "Uponor Smatrix"
    assert sample.sample_name == "Living room"
    assert sample.metric_type == "METRIC_TYPE_GAUGE"
    assert sample.value == pytest.approx(21.5)


def test_new_measurement_is_labelled():
    measurement = Measurement.new(Config(location="My address"))

    assert measurement.location == "My address"
    assert measurement.source == SOURCE
    assert measurement.samples == []
    assert measurement.id


def test_build_measurement_collects_decoded_samples():
    config = Config(location="My address", sample_configs=[LIVING_ROOM])
    frames = [
        frame("045  I --- 04:123456 --:------ 04:123456 30C9 003 000866"),
        frame("045  I --- 04:654321 --:------ 04:654321 30C9 003 000900"),
        frame("045  I --- 04:123456 --:------ --:------ 1F09 003 FF0546"),
    ]

    measurement = build_measurement(config, frames, TemperatureDecoder())

    assert len(measurement.samples) == 1
    assert measurement.samples[0].value == pytest.approx(0x0866 * 0.01)
