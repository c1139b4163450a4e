"""Tests for smatrix/classifier.py: frame vs noise classification."""

import pytest

from smatrix.classifier import (
    ClassifiedLine, Verdict, classify, decode_line, log_classified,
)
from smatrix.mocks import MockLogger

FRAME = "045  I --- 04:123456 --:------ --:------ 1F09 003"


class TestValidFrames:
    def test_example_frame(self):
        assert classify(FRAME) == Verdict.VALID_FRAME

    def test_bytes_with_line_terminator(self):
        assert classify((FRAME + "\r\n").encode()) == Verdict.VALID_FRAME

    @pytest.mark.parametrize("line", [
        "045  I --- 04:123456 --:------ 04:123456 30C9 003 0007C1",
        "063  W --- 01:098765 04:123456 --:------ 2309 003 0107D0",
        "000 RQ --- 18:000730 01:098765 --:------ 000A 001 00",
        "072 RP --- 01:098765 18:000730 --:------ 000a 006 001000",
        "045  I --- --:------ --:------ 12:345678 1f09 003 FF0546",
    ])
    def test_all_message_types(self, line):
        assert classify(line) == Verdict.VALID_FRAME

    def test_trailing_payload_allowed(self):
        assert classify(FRAME + " 00052D") == Verdict.VALID_FRAME


class TestFlaggedErrors:
    def test_short_err_line(self):
        assert classify("some short ERR line") == Verdict.FLAGGED_ERROR

    def test_exactly_forty_chars_is_flagged(self):
        assert classify("x" * 40) == Verdict.FLAGGED_ERROR

    @pytest.mark.parametrize("marker", ["_ENC", "_BAD", "BAD", "ERR"])
    def test_error_marker_in_long_frame(self, marker):
        assert classify(f"{FRAME} {marker}") == Verdict.FLAGGED_ERROR

    def test_empty_line(self):
        assert classify(b"") == Verdict.FLAGGED_ERROR


class TestOtherLines:
    def test_long_line_without_frame_layout(self):
        line = "# evofw3 0.7.1 booting, radio calibrated at 868.300MHz"
        assert classify(line) == Verdict.OTHER

    def test_pattern_must_match_from_start(self):
        assert classify("xx " + FRAME) == Verdict.OTHER

    def test_bad_message_type(self):
        assert classify(FRAME.replace("  I", " XX")) == Verdict.OTHER

    def test_non_hex_code(self):
        assert classify(FRAME.replace("1F09", "1G09")) == Verdict.OTHER


class TestOversized:
    def test_prefix_fragment_is_oversized(self):
        assert classify(FRAME.encode(), is_prefix=True) == Verdict.OVERSIZED

    def test_prefix_wins_over_error_markers(self):
        assert classify(b"ERR", is_prefix=True) == Verdict.OVERSIZED


class TestProperties:
    @pytest.mark.parametrize("length", range(0, 41, 5))
    def test_short_lines_never_valid(self, length):
        line = FRAME[:length]
        assert classify(line) != Verdict.VALID_FRAME

    def test_same_input_same_verdict(self):
        verdicts = {classify(FRAME) for _ in range(5)}
        assert verdicts == {Verdict.VALID_FRAME}

    def test_invalid_utf8_does_not_raise(self):
        assert classify(b"\xff\xfe" * 30) == Verdict.OTHER


def test_decode_line_strips_terminators():
    assert decode_line(b"abc\r\n") == "abc"
    assert decode_line("abc\n") == "abc"


class TestLogClassified:
    def _log(self, verdict):
        logger = MockLogger()
        log_classified(logger, ClassifiedLine(text="line", verdict=verdict, received_at=0.0))
        return logger

    def test_valid_frame_logged_at_debug_with_tag(self):
        logger = self._log(Verdict.VALID_FRAME)
        assert logger.get_messages("DEBUG") == [("DEBUG", "evohome: line")]

    def test_oversized_logged_as_warning(self):
        logger = self._log(Verdict.OVERSIZED)
        assert logger.contains("too long", level="WARNING")

    @pytest.mark.parametrize("verdict", [Verdict.FLAGGED_ERROR, Verdict.OTHER])
    def test_noise_logged_at_info(self, verdict):
        logger = self._log(verdict)
        assert logger.get_messages("INFO") == [("INFO", "line")]
