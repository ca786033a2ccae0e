"""
QSO record model and builder.

A QsoRecord is an immutable, validated contact. Records are assembled with
QsoRecordBuilder, which accepts values in any order (typed values or their
ADIF text form) and validates everything at once in build().
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from adif_util import parse_date, parse_freq, parse_time
from qrz_errors import FieldProblem, InvalidParamsError

# Well-known fields in ADIF output order
WELL_KNOWN_FIELDS = (
    "call",
    "station_callsign",
    "qso_date",
    "time_on",
    "qso_date_off",
    "time_off",
    "band",
    "mode",
    "freq",
    "rst_sent",
    "rst_rcvd",
    "name",
    "qth",
    "comment",
)
REQUIRED_FIELDS = ("call", "station_callsign", "qso_date", "time_on")

# QRZ stamps every fetched record with its logbook id
LOGID_FIELD = "app_qrzlog_logid"

_FIELD_NAME_RE = re.compile(r"[a-z0-9_]+", re.ASCII)


def _callsign(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"callsign must be a string, got {type(value).__name__}")
    value = value.strip()
    if not value:
        raise ValueError("callsign is empty")
    if not value.isascii():
        raise ValueError(f"callsign must be ASCII, got {value!r}")
    if any(c.isspace() for c in value):
        raise ValueError(f"callsign contains whitespace: {value!r}")
    return value.upper()


def _date(value: Any) -> date:
    if isinstance(value, datetime):
        # ADIF dates are UTC
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date(value)
    raise TypeError(f"expected a date, got {type(value).__name__}")


def _time(value: Any) -> time:
    if isinstance(value, str):
        return parse_time(value)
    if not isinstance(value, time):
        raise TypeError(f"expected a time, got {type(value).__name__}")
    if value.microsecond:
        raise ValueError(f"ADIF times have whole seconds, got {value.isoformat()}")
    if value.tzinfo is not None:
        if value.utcoffset() != timedelta(0):
            raise ValueError(f"time must be UTC, got {value.isoformat()}")
        value = value.replace(tzinfo=None)
    return value


def _freq(value: Any) -> float:
    if isinstance(value, str):
        value = parse_freq(value)
    elif isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"frequency must be a number, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"frequency must be a finite, non-negative MHz value, got {value!r}")
    return value


def _text(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value


_COERCERS: Dict[str, Callable[[Any], Any]] = {
    "call": _callsign,
    "station_callsign": _callsign,
    "qso_date": _date,
    "time_on": _time,
    "qso_date_off": _date,
    "time_off": _time,
    "band": _text,
    "mode": _text,
    "freq": _freq,
    "rst_sent": _text,
    "rst_rcvd": _text,
    "name": _text,
    "qth": _text,
    "comment": _text,
}


def _normalize(
    values: Mapping[str, Any], extras: Mapping[str, Any]
) -> Tuple[Dict[str, Any], Dict[str, str], List[FieldProblem]]:
    """
    Coerce well-known values and additional fields, collecting every problem.
    """
    normalized: Dict[str, Any] = {}
    problems: List[FieldProblem] = []

    for name in WELL_KNOWN_FIELDS:
        raw = values.get(name)
        if raw is None:
            if name in REQUIRED_FIELDS:
                problems.append(FieldProblem(name, "missing required field"))
            normalized[name] = None
            continue
        try:
            normalized[name] = _COERCERS[name](raw)
        except (TypeError, ValueError) as e:
            problems.append(FieldProblem(name, str(e)))
            normalized[name] = None

    clean_extras: Dict[str, str] = {}
    for key, value in extras.items():
        if not isinstance(key, str) or not _FIELD_NAME_RE.fullmatch(key.lower()):
            problems.append(FieldProblem(str(key), "invalid ADIF field name"))
            continue
        key = key.lower()
        if key in _COERCERS:
            problems.append(FieldProblem(key, "reserved field name in additional_fields"))
            continue
        if not isinstance(value, str):
            problems.append(FieldProblem(key, f"value must be a string, got {type(value).__name__}"))
            continue
        clean_extras[key] = value

    return normalized, clean_extras, problems


@dataclass(frozen=True)
class QsoRecord:
    """One logged contact."""
    call: str
    station_callsign: str
    qso_date: date
    time_on: time
    qso_date_off: Optional[date] = None
    time_off: Optional[time] = None
    band: Optional[str] = None
    mode: Optional[str] = None
    freq: Optional[float] = None
    rst_sent: Optional[str] = None
    rst_rcvd: Optional[str] = None
    name: Optional[str] = None
    qth: Optional[str] = None
    comment: Optional[str] = None
    additional_fields: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        values = {name: getattr(self, name) for name in WELL_KNOWN_FIELDS}
        normalized, extras, problems = _normalize(values, self.additional_fields)
        if problems:
            raise InvalidParamsError(problems)
        for name, value in normalized.items():
            object.__setattr__(self, name, value)
        object.__setattr__(self, "additional_fields", MappingProxyType(extras))

    @classmethod
    def builder(cls) -> "QsoRecordBuilder":
        return QsoRecordBuilder()

    def to_builder(self) -> "QsoRecordBuilder":
        """
        Return a builder pre-loaded with this record's values
        """
        builder = QsoRecordBuilder()
        for name in WELL_KNOWN_FIELDS:
            value = getattr(self, name)
            if value is not None:
                builder._values[name] = value
        for key, value in self.additional_fields.items():
            builder.additional_field(key, value)
        return builder

    @property
    def qso_datetime(self) -> datetime:
        """
        QSO start as a naive datetime (ADIF times are UTC)
        """
        return datetime.combine(self.qso_date, self.time_on)

    @property
    def logid(self) -> Optional[int]:
        """
        The QRZ logbook id this record was fetched with, if any
        """
        raw = self.additional_fields.get(LOGID_FIELD, "")
        if raw.isascii() and raw.isdigit():
            return int(raw)
        return None


class QsoRecordBuilder:
    """
    Accumulates QSO fields. Setters overwrite earlier values and never
    validate; validate() and build() check the accumulated state.
    """

    def __init__(self):
        self._values: Dict[str, Any] = {}
        self._extras: Dict[str, str] = {}

    def _set(self, name: str, value: Any) -> "QsoRecordBuilder":
        self._values[name] = value
        return self

    def call(self, call: str) -> "QsoRecordBuilder":
        return self._set("call", call)

    def station_callsign(self, callsign: str) -> "QsoRecordBuilder":
        return self._set("station_callsign", callsign)

    def qso_date(self, qso_date) -> "QsoRecordBuilder":
        return self._set("qso_date", qso_date)

    # Shorter alias
    date = qso_date

    def time_on(self, time_on) -> "QsoRecordBuilder":
        return self._set("time_on", time_on)

    def qso_date_off(self, qso_date_off) -> "QsoRecordBuilder":
        return self._set("qso_date_off", qso_date_off)

    def time_off(self, time_off) -> "QsoRecordBuilder":
        return self._set("time_off", time_off)

    def band(self, band: str) -> "QsoRecordBuilder":
        return self._set("band", band)

    def mode(self, mode: str) -> "QsoRecordBuilder":
        return self._set("mode", mode)

    def freq(self, freq) -> "QsoRecordBuilder":
        return self._set("freq", freq)

    def rst_sent(self, rst: str) -> "QsoRecordBuilder":
        return self._set("rst_sent", rst)

    def rst_rcvd(self, rst: str) -> "QsoRecordBuilder":
        return self._set("rst_rcvd", rst)

    def name(self, name: str) -> "QsoRecordBuilder":
        return self._set("name", name)

    def qth(self, qth: str) -> "QsoRecordBuilder":
        return self._set("qth", qth)

    def comment(self, comment: str) -> "QsoRecordBuilder":
        return self._set("comment", comment)

    def additional_field(self, key: str, value: str) -> "QsoRecordBuilder":
        """
        Set any other ADIF field. Keys are lowercased; a well-known name is
        routed to its attribute and decoded from ADIF text at build time.
        """
        if isinstance(key, str):
            key = key.lower()
            if key in _COERCERS:
                return self._set(key, value)
        self._extras[key] = value
        return self

    def validate(self) -> List[FieldProblem]:
        """
        Return every missing or invalid field. Empty means build() will succeed.
        """
        _, _, problems = _normalize(self._values, self._extras)
        return problems

    def build(self) -> QsoRecord:
        normalized, extras, problems = _normalize(self._values, self._extras)
        if problems:
            raise InvalidParamsError(problems)
        return QsoRecord(additional_fields=extras, **normalized)
