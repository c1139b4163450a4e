"""
Line classifier for receiver output.

Separates protocol frames from noise at the transport-framing level only.
Decoding a frame's fields into a measurement is not done here.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Union

from .interfaces import LoggerInterface

MIN_FRAME_LENGTH = 40

# Markers the receiver firmware puts in lines it failed to decode
ERROR_MARKERS = ("_ENC", "_BAD", "BAD", "ERR")

# e.g. "045  I --- 04:123456 --:------ --:------ 1F09 003 ..."
FRAME_PATTERN = re.compile(
    r"^\d{3} ( I| W|RQ|RP) --- (--:------|\d{2}:\d{6}) "
    r"(--:------ |\d{2}:\d{6} ){2}[0-9a-fA-F]{4} \d{3}"
)


class Verdict(Enum):
    """Classification of one raw line."""
    VALID_FRAME = "valid_frame"
    FLAGGED_ERROR = "flagged_error"
    OVERSIZED = "oversized"
    OTHER = "other"


@dataclass(frozen=True)
class ClassifiedLine:
    """A received line with its verdict, as handed to the collector."""
    text: str
    verdict: Verdict
    received_at: float


def decode_line(raw: Union[bytes, str]) -> str:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return raw.rstrip("\r\n")


def classify(raw: Union[bytes, str], is_prefix: bool = False) -> Verdict:
    """
    Classify one line. Pure: same input, same verdict.

    Rules, in order: a fragment of an oversized line is OVERSIZED; short
    lines and lines carrying an error marker are FLAGGED_ERROR; the rest
    is VALID_FRAME if it matches the frame layout, OTHER otherwise.
    """
    if is_prefix:
        return Verdict.OVERSIZED

    text = decode_line(raw)
    if len(text) <= MIN_FRAME_LENGTH or any(m in text for m in ERROR_MARKERS):
        return Verdict.FLAGGED_ERROR

    if FRAME_PATTERN.match(text):
        return Verdict.VALID_FRAME
    return Verdict.OTHER


def log_classified(logger: LoggerInterface, line: ClassifiedLine) -> None:
    """Log a classified line at the level its verdict calls for."""
    if line.verdict is Verdict.OVERSIZED:
        logger.warning(f"Message is too long for buffer and split over multiple lines: {line.text}")
    elif line.verdict is Verdict.VALID_FRAME:
        logger.debug(f"evohome: {line.text}")
    else:
        logger.info(line.text)
