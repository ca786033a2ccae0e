"""
ADIF parsing and writing for QSO records.

ADIF format: <FIELD:LENGTH[:TYPE]>value<FIELD:LENGTH>value...<EOR>

Description of the file format: http://www.adif.org/314/ADIF_314.htm#ADI_File_Format

Lengths are authoritative. Values are read by byte count, never by looking for
the next "<", since values may contain "<" and ">" themselves.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from adif_util import (
    format_date,
    format_freq,
    format_time,
    make_field,
    parse_date,
    parse_freq,
    parse_time,
)
from qrz_errors import ADIFParseError, InvalidParamsError
from qso_record import WELL_KNOWN_FIELDS, QsoRecord, QsoRecordBuilder

logger = logging.getLogger(__name__)

ADIF_VERSION = "3.1.4"
PROGRAM_ID = "qrz-logbook-client"

# Tag -> (builder setter, decoder). Anything else lands in additional_fields.
_FIELD_SETTERS: Dict[str, Tuple[Callable, Optional[Callable[[str], object]]]] = {
    "call": (QsoRecordBuilder.call, None),
    "station_callsign": (QsoRecordBuilder.station_callsign, None),
    "qso_date": (QsoRecordBuilder.qso_date, parse_date),
    "time_on": (QsoRecordBuilder.time_on, parse_time),
    "qso_date_off": (QsoRecordBuilder.qso_date_off, parse_date),
    "time_off": (QsoRecordBuilder.time_off, parse_time),
    "band": (QsoRecordBuilder.band, None),
    "mode": (QsoRecordBuilder.mode, None),
    "freq": (QsoRecordBuilder.freq, parse_freq),
    "rst_sent": (QsoRecordBuilder.rst_sent, None),
    "rst_rcvd": (QsoRecordBuilder.rst_rcvd, None),
    "name": (QsoRecordBuilder.name, None),
    "qth": (QsoRecordBuilder.qth, None),
    "comment": (QsoRecordBuilder.comment, None),
}

# Attribute -> ADIF text
_FIELD_FORMATTERS: Dict[str, Callable[[object], str]] = {
    "qso_date": format_date,
    "qso_date_off": format_date,
    "time_on": format_time,
    "time_off": format_time,
    "freq": format_freq,
}


def _read_specifier(data: bytes, start: int) -> Tuple[str, Optional[int], int]:
    """
    Read the specifier starting at the "<" at `start`.

    Returns (field name, declared length or None for <eor>/<eoh>, offset of
    the first value byte).
    """
    end = data.find(b">", start)
    if end == -1:
        raise ADIFParseError(f"unterminated field specifier at offset {start}")

    raw = data[start + 1:end]
    try:
        spec = raw.decode("ascii")
    except UnicodeDecodeError:
        raise ADIFParseError(f"non-ASCII field specifier at offset {start}") from None

    parts = spec.split(":")
    name = parts[0].strip().lower()
    if not name:
        raise ADIFParseError(f"empty field name in <{spec}> at offset {start}")

    if name in ("eor", "eoh"):
        # Some writers emit <eor:0>; a marker never carries a value
        if len(parts) > 1 and parts[1].strip() not in ("", "0"):
            raise ADIFParseError(f"marker <{spec}> at offset {start} declares a value")
        return name, None, end + 1
    if len(parts) == 1:
        raise ADIFParseError(f"field <{spec}> at offset {start} has no length")
    if len(parts) > 3:
        raise ADIFParseError(f"invalid field specifier <{spec}> at offset {start}")

    length_str = parts[1].strip()
    if not (length_str.isascii() and length_str.isdigit()):
        raise ADIFParseError(
            f"invalid length {parts[1]!r} for field {name!r} at offset {start}"
        )
    return name, int(length_str), end + 1


def _finish_record(builder: QsoRecordBuilder, index: int, offset: int) -> QsoRecord:
    try:
        return builder.build()
    except InvalidParamsError as e:
        details = "; ".join(str(p) for p in e.problems)
        raise ADIFParseError(f"record {index} ending at offset {offset}: {details}") from e


def parse_adif(adif_string: str) -> List[QsoRecord]:
    """
    Parse ADIF text into QsoRecords, in source order.

    An optional header ending in <eoh> is skipped. Every record must end in
    <eor> and pass the same validation as QsoRecordBuilder.build().

    Args:
        adif_string: Raw ADIF text

    Returns:
        List of QsoRecord objects (empty for blank or header-only input)

    Raises:
        ADIFParseError: On any length, specifier, value or record problem
    """
    data = adif_string.encode("utf-8")
    if not data.strip():
        return []

    records: List[QsoRecord] = []
    builder = QsoRecordBuilder()
    pending = False  # fields seen since the last <eor>/<eoh>
    # A header that doesn't start with a field begins with free text
    in_header = not data.lstrip().startswith(b"<")
    pos = 0

    while True:
        start = data.find(b"<", pos)
        gap = data[pos:] if start == -1 else data[pos:start]
        if pending and not in_header and gap.strip():
            raise ADIFParseError(
                f"unexpected text {gap.strip()[:20]!r} at offset {pos}; "
                f"a declared field length is probably wrong"
            )
        if start == -1:
            break

        name, length, value_start = _read_specifier(data, start)

        if name == "eoh":
            if records:
                raise ADIFParseError(f"<eoh> after the first record at offset {start}")
            in_header = False
            builder = QsoRecordBuilder()
            pending = False
            pos = value_start
            continue

        if name == "eor":
            if in_header:
                raise ADIFParseError(f"<eor> inside unterminated header at offset {start}")
            # Back-to-back <eor> markers carry no record
            if pending:
                records.append(_finish_record(builder, len(records) + 1, start))
            builder = QsoRecordBuilder()
            pending = False
            pos = value_start
            continue

        value_end = value_start + length
        if value_end > len(data):
            raise ADIFParseError(
                f"field {name!r} at offset {start} declares {length} bytes "
                f"but only {len(data) - value_start} remain"
            )
        try:
            value = data[value_start:value_end].decode("utf-8")
        except UnicodeDecodeError:
            raise ADIFParseError(
                f"field {name!r} at offset {start}: length {length} splits a UTF-8 character"
            ) from None
        pos = value_end

        if in_header:
            continue

        setter, decoder = _FIELD_SETTERS.get(name, (None, None))
        if setter is None:
            builder.additional_field(name, value)
        else:
            if decoder is not None:
                try:
                    value = decoder(value)
                except ValueError as e:
                    raise ADIFParseError(
                        f"field <{name}:{length}> at offset {start}: {e}"
                    ) from e
            setter(builder, value)
        pending = True

    if in_header:
        raise ADIFParseError("header is not terminated by <eoh> and no record was found")
    if pending:
        raise ADIFParseError(f"record {len(records) + 1} is not terminated by <eor>")

    logger.debug(f"Decoded {len(records)} ADIF records")
    return records


def to_adif(qso: QsoRecord) -> str:
    """
    Encode a single record as ADIF, terminated by <eor>.

    Well-known fields come first in a fixed order, then additional fields in
    insertion order.
    """
    fields = []
    for name in WELL_KNOWN_FIELDS:
        value = getattr(qso, name)
        if value is None:
            continue
        formatter = _FIELD_FORMATTERS.get(name)
        text = formatter(value) if formatter else value
        fields.append(make_field(name, text))

    for key, value in qso.additional_fields.items():
        fields.append(make_field(key.lower(), value))

    fields.append("<eor>")
    return "".join(fields)


def to_adif_file(
    qsos: Sequence[QsoRecord],
    program_id: str = PROGRAM_ID,
    created: Optional[datetime] = None,
) -> str:
    """
    Write records as a complete ADI document with a header, one record per line.
    """
    if created is None:
        created = datetime.now(timezone.utc)

    lines = [
        f"Generated by {program_id}",
        make_field("adif_ver", ADIF_VERSION),
        make_field("created_timestamp", created.strftime("%Y%m%d %H%M%S")),
        make_field("programid", program_id),
        "<eoh>",
    ]
    lines.extend(to_adif(qso) for qso in qsos)
    return "\n".join(lines) + "\n"
