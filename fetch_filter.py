"""
FETCH option builder for the QRZ Logbook API.
"""

from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from qrz_errors import FieldProblem, InvalidParamsError

OPTION_SEPARATOR = ";"

# Serialization order of the OPTION string
_OPTION_ORDER = ("all", "band", "mode", "call", "status", "date_range", "max", "after_logid")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class FetchFilter:
    """
    Accumulates FETCH criteria. Each setter overwrites its previous value and
    returns the filter, so calls can be chained:

        FetchFilter().band("20m").mode("CW").max(100)

    Validation happens when the filter is serialized.
    """

    def __init__(self):
        self._criteria: Dict[str, Any] = {}

    @classmethod
    def all(cls) -> "FetchFilter":
        """
        Match every record, uncapped. Meant to be driven by the paginator.
        """
        f = cls()
        f._criteria["all"] = True
        return f

    def _set(self, key: str, value: Any) -> "FetchFilter":
        self._criteria[key] = value
        return self

    def band(self, band: str) -> "FetchFilter":
        return self._set("band", band)

    def mode(self, mode: str) -> "FetchFilter":
        return self._set("mode", mode)

    def call(self, call: str) -> "FetchFilter":
        return self._set("call", call)

    def status(self, status: str) -> "FetchFilter":
        """
        Filter on QSL status, e.g. "CONFIRMED"
        """
        return self._set("status", status)

    def date_range(self, start: date, end: date) -> "FetchFilter":
        """
        Inclusive QSO date range
        """
        return self._set("date_range", (start, end))

    def max(self, max_records: int) -> "FetchFilter":
        return self._set("max", max_records)

    def after_logid(self, logid: int) -> "FetchFilter":
        return self._set("after_logid", logid)

    def copy(self) -> "FetchFilter":
        new = FetchFilter()
        new._criteria = dict(self._criteria)
        return new

    @property
    def criteria(self) -> Mapping[str, Any]:
        """
        Read-only view of the criteria set so far
        """
        return MappingProxyType(self._criteria)

    @property
    def page_size(self) -> Optional[int]:
        return self._criteria.get("max")

    @property
    def cursor(self) -> Optional[int]:
        return self._criteria.get("after_logid")

    def validate(self) -> List[FieldProblem]:
        problems = []
        for key in ("band", "mode", "call", "status"):
            value = self._criteria.get(key)
            if value is None:
                continue
            if not isinstance(value, str) or not value.strip():
                problems.append(FieldProblem(key, "must be a non-empty string"))
            elif any(c in value for c in (OPTION_SEPARATOR, ",", ":")):
                problems.append(FieldProblem(key, f"contains a reserved character: {value!r}"))

        max_records = self._criteria.get("max")
        if max_records is not None and (not _is_int(max_records) or max_records <= 0):
            problems.append(FieldProblem("max", f"must be a positive integer, got {max_records!r}"))

        after_logid = self._criteria.get("after_logid")
        if after_logid is not None and (not _is_int(after_logid) or after_logid < 0):
            problems.append(
                FieldProblem("after_logid", f"must be a non-negative integer, got {after_logid!r}")
            )

        date_range = self._criteria.get("date_range")
        if date_range is not None:
            start, end = date_range
            if not all(isinstance(d, date) for d in (start, end)):
                problems.append(FieldProblem("date_range", "start and end must be dates"))
            elif _as_date(start) > _as_date(end):
                problems.append(FieldProblem("date_range", f"start {start} is after end {end}"))

        return problems

    def to_option_string(self) -> str:
        """
        Serialize to the OPTION value, e.g. "BAND:20m;MODE:CW;MAX:100;AFTER_LOGID:500".
        Only criteria that were set are emitted.

        Raises:
            InvalidParamsError: If any criterion is invalid
        """
        problems = self.validate()
        if problems:
            raise InvalidParamsError(problems)

        options = []
        for key in _OPTION_ORDER:
            value = self._criteria.get(key)
            if value is None or value is False:
                continue
            if key == "all":
                options.append("ALL")
            elif key == "date_range":
                start, end = (_as_date(d).strftime("%Y%m%d") for d in value)
                options.append(f"BETWEEN:{start}+{end}")
            else:
                options.append(f"{key.upper()}:{value}")
        return OPTION_SEPARATOR.join(options)

    def to_params(self) -> Dict[str, str]:
        """
        Request parameters for a FETCH call; empty when nothing is set
        """
        option = self.to_option_string()
        return {"OPTION": option} if option else {}

    def __eq__(self, other):
        if not isinstance(other, FetchFilter):
            return NotImplemented
        return self._criteria == other._criteria

    def __repr__(self) -> str:
        items = ", ".join(f"{k}={v!r}" for k, v in self._criteria.items())
        return f"FetchFilter({items})"


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
