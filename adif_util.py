"""
ADIF value helpers - dates, times, frequencies and field formatting.

Reference: https://www.adif.org/adif
"""

import math
import re
from datetime import date, datetime, time
from decimal import Decimal

_DATE_RE = re.compile(r"\d{8}", re.ASCII)
_TIME_RE = re.compile(r"\d{4}(\d{2})?", re.ASCII)
_NUMBER_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)", re.ASCII)


def parse_date(date_str: str) -> date:
    """
    Parse an ADIF date - YYYYMMDD
    """
    if not _DATE_RE.fullmatch(date_str):
        raise ValueError(f"date must be 8 digits (YYYYMMDD), got {date_str!r}")
    try:
        return datetime.strptime(date_str, "%Y%m%d").date()
    except ValueError:
        raise ValueError(f"invalid calendar date {date_str!r}") from None


def parse_time(time_str: str) -> time:
    """
    Parse an ADIF time - HHMM or HHMMSS. Missing seconds are zero.
    """
    if not _TIME_RE.fullmatch(time_str):
        raise ValueError(f"time must be HHMM or HHMMSS, got {time_str!r}")
    if len(time_str) == 4:
        time_str += "00"
    try:
        return datetime.strptime(time_str, "%H%M%S").time()
    except ValueError:
        raise ValueError(f"invalid time of day {time_str!r}") from None


def parse_freq(freq_str: str) -> float:
    """
    Parse a frequency in MHz. The whole string must be a plain decimal number.
    """
    if not _NUMBER_RE.fullmatch(freq_str):
        raise ValueError(f"frequency must be a decimal number, got {freq_str!r}")
    return float(freq_str)


def format_date(d: date) -> str:
    return d.strftime("%Y%m%d")


def format_time(t: time) -> str:
    # Keep the short form unless there is something to lose
    if t.second:
        return t.strftime("%H%M%S")
    return t.strftime("%H%M")


def format_freq(freq: float) -> str:
    """
    Shortest decimal that reads back as the same float, never in exponent form
    """
    if not math.isfinite(freq):
        raise ValueError(f"frequency must be finite, got {freq!r}")
    text = repr(float(freq))
    if "e" in text:
        text = format(Decimal(text), "f")
    return text


def field_length(value: str) -> int:
    """
    ADIF lengths count bytes, not characters
    """
    return len(value.encode("utf-8"))


def make_field(name: str, value: str) -> str:
    """
    Return an ADIF field/value, like "<call:4>W1AW"
    """
    return f"<{name}:{field_length(value)}>{value}"
