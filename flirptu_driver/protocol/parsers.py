"""
Typed parsing of trimmed reply values.

Numeric getters return a sentinel (NaN, or INT_SENTINEL below the valid
domain) so polling callers never raise on a transient bad read. Structured
replies return None when they do not match, never a partial result.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Optional


logger = logging.getLogger(__name__)

# Counters and step values reported by the controller are never below zero
# where this sentinel is used.
INT_SENTINEL = -1

POSITION_PATTERN = re.compile(r"PP \* (-?\d+)\r\nTP\r\n\* (-?\d+)\r\n")

# Numbers as the controller prints them; int()/float() alone also accept
# "nan", "inf" and "1_000".
INT_PATTERN = re.compile(r"[+-]?\d+")
FLOAT_PATTERN = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

VDCT_DELIMITER = ","
VDCT_FIELDS = 4


@dataclass(frozen=True)
class PanTiltPosition:
    """Axis positions in steps."""
    pan: int
    tilt: int


@dataclass(frozen=True)
class VdctReading:
    """Input voltage and temperatures (degrees Fahrenheit) reported by 'O'."""
    voltage: float
    temperature: float
    pan_motor_temperature: float
    tilt_motor_temperature: float


def parse_int(text: str, context: str = "") -> int:
    """Convert a trimmed value to int, or INT_SENTINEL with a logged diagnostic."""
    value = text.strip() if isinstance(text, str) else ""
    if not INT_PATTERN.fullmatch(value):
        logger.error(f"{context}: Failed to parse response as integer: {text!r}")
        return INT_SENTINEL
    return int(value)


def parse_float(text: str, context: str = "") -> float:
    """Convert a trimmed value to a finite float, or NaN with a logged diagnostic."""
    value = text.strip() if isinstance(text, str) else ""
    if not FLOAT_PATTERN.fullmatch(value):
        logger.error(f"{context}: Failed to parse response as float: {text!r}")
        return math.nan

    number = float(value)
    if not math.isfinite(number):
        logger.error(f"{context}: Float response out of range: {text!r}")
        return math.nan
    return number


def parse_step(text: str, context: str = "") -> Optional[int]:
    """
    Convert a signed step count, or None with a logged diagnostic.

    Step limits may legitimately be -1, so INT_SENTINEL cannot mark failure.

    Example:
        >>> parse_step(" -27067 ")
        -27067
    """
    value = text.strip() if isinstance(text, str) else ""
    if not INT_PATTERN.fullmatch(value):
        logger.error(f"{context}: Failed to parse response as step count: {text!r}")
        return None
    return int(value)


def parse_position(response: str) -> Optional[PanTiltPosition]:
    """
    Parse the composite reply to 'PP TP'.

    Example:
        >>> parse_position("PP * 700\\r\\nTP\\r\\n* -50\\r\\n")
        PanTiltPosition(pan=700, tilt=-50)
    """
    match = POSITION_PATTERN.search(response)
    if match is None:
        return None
    return PanTiltPosition(pan=int(match.group(1)), tilt=int(match.group(2)))


def parse_vdct(value: str) -> Optional[VdctReading]:
    """
    Parse the comma-separated reply to 'O'.

    The first field is the input voltage, the next three are controller,
    pan motor and tilt motor temperatures. Empty tokens are skipped and
    extra tokens are ignored.
    """
    tokens = [t.strip() for t in value.split(VDCT_DELIMITER) if t.strip()]
    if len(tokens) < VDCT_FIELDS:
        logger.error(f"Invalid Vdct data format: '{value}'")
        return None

    fields = tokens[:VDCT_FIELDS]
    if not all(FLOAT_PATTERN.fullmatch(t) for t in fields):
        logger.error(f"Invalid Vdct data format: '{value}'")
        return None

    numbers = [float(t) for t in fields]
    if not all(math.isfinite(n) for n in numbers):
        logger.error(f"Vdct value out of range: '{value}'")
        return None

    return VdctReading(*numbers)


def steps_to_degrees(steps: float, resolution_arcsec: float) -> float:
    """Convert a step count to degrees given arc-seconds per step."""
    return (steps * resolution_arcsec) / 3600.0


def is_valid_float(value: float) -> bool:
    return math.isfinite(value)


def is_valid_int(value: int) -> bool:
    return value != INT_SENTINEL
