"""
Units - Text forms of Flarm IDs and radio frequencies
"""

import math
import re

from ..constants import MAX_FLARM_ID, MAX_FREQUENCY, FREQUENCY_UNSET
from ..exceptions import InvalidFlarmId, InvalidFrequency

FLARM_ID_PATTERN = re.compile(r"[0-9A-Fa-f]{1,6}")


def format_flarm_id(flarm_id: int) -> str:
    """Format a Flarm ID as six upper-case hex digits"""
    if not 0 <= flarm_id <= MAX_FLARM_ID:
        raise InvalidFlarmId(flarm_id)
    return f"{flarm_id:06X}"


def parse_flarm_id(text: str) -> int:
    """
    Parse a hexadecimal Flarm ID such as "3EE3C7"

    Raises:
        InvalidFlarmId: If text is not hex or exceeds 24 bits
    """
    if not FLARM_ID_PATTERN.fullmatch(text.strip()):
        raise InvalidFlarmId(text)
    return int(text.strip(), 16)


def format_frequency(khz: int) -> str:
    """Format a kHz value as MHz with three decimals; unset becomes ''"""
    if khz == FREQUENCY_UNSET:
        return ""
    return f"{khz // 1000}.{khz % 1000:03d}"


def parse_frequency(text: str) -> int:
    """
    Parse a MHz frequency such as "123.500" into kHz

    Empty text means unset and parses to 0.

    Raises:
        InvalidFrequency: If text is not a number or is out of range
    """
    text = text.strip()
    if not text:
        return FREQUENCY_UNSET
    try:
        mhz = float(text)
    except ValueError:
        raise InvalidFrequency(text)
    if not math.isfinite(mhz) or mhz < 0:
        raise InvalidFrequency(text)
    khz = round(mhz * 1000)
    if khz > MAX_FREQUENCY:
        raise InvalidFrequency(text)
    return khz
