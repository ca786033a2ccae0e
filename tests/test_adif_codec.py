"""
Tests for ADIF parsing and writing.
"""

import pytest
from datetime import date, datetime, time

from adif_codec import parse_adif, to_adif, to_adif_file
from adif_util import field_length, format_freq, make_field
from qrz_errors import ADIFParseError, InvalidParamsError
from qso_record import WELL_KNOWN_FIELDS, QsoRecord

# A valid ASCII value for every well-known tag plus one unknown tag
SAMPLE_VALUES = {
    "call": "W1AW",
    "station_callsign": "K1ABC",
    "qso_date": "20240115",
    "time_on": "1430",
    "qso_date_off": "20240116",
    "time_off": "1500",
    "band": "20m",
    "mode": "SSB",
    "freq": "14.074",
    "rst_sent": "59",
    "rst_rcvd": "57",
    "name": "Hans",
    "qth": "Berlin",
    "comment": "tnx",
    "gridsquare": "FN31",
}


def build_qso(**overrides):
    builder = (
        QsoRecord.builder()
        .call("W1AW")
        .station_callsign("K1ABC")
        .qso_date(date(2024, 1, 15))
        .time_on(time(14, 30))
    )
    for key, value in overrides.items():
        getattr(builder, key)(value)
    return builder.build()


class TestADIFParsing:
    """Test ADIF format parsing."""

    def test_parse_simple_adif(self):
        """Test parsing a simple ADIF record."""
        adif = "<call:4>W1AW<band:3>20m<mode:3>SSB<qso_date:8>20240115<time_on:4>1430<station_callsign:5>K1ABC<eor>"
        result = parse_adif(adif)

        assert len(result) == 1
        qso = result[0]
        assert qso.call == "W1AW"
        assert qso.band == "20m"
        assert qso.mode == "SSB"
        assert qso.qso_date == date(2024, 1, 15)
        assert qso.time_on == time(14, 30, 0)
        assert qso.station_callsign == "K1ABC"
        assert dict(qso.additional_fields) == {}

    def test_parse_multiple_records(self):
        """Test parsing multiple records keeps source order."""
        adif = """
        <CALL:5>W1ABC<STATION_CALLSIGN:5>K1ABC<QSO_DATE:8>20260115<TIME_ON:4>1423<EOR>
        <CALL:5>K2DEF<STATION_CALLSIGN:5>K1ABC<QSO_DATE:8>20260116<TIME_ON:4>0800<EOR>
        """
        result = parse_adif(adif)

        assert [q.call for q in result] == ["W1ABC", "K2DEF"]

    def test_tags_are_case_insensitive(self):
        """Test upper-case tags and <EOR> are accepted."""
        adif = "<Call:4>W1AW<STATION_CALLSIGN:5>K1ABC<Qso_Date:8>20240115<TIME_ON:4>1430<EoR>"
        result = parse_adif(adif)

        assert result[0].call == "W1AW"

    def test_lowercase_callsigns_are_uppercased(self):
        """Test callsigns from the file are normalized."""
        adif = "<call:4>w1aw<station_callsign:5>k1abc<qso_date:8>20240115<time_on:4>1430<eor>"
        result = parse_adif(adif)

        assert result[0].call == "W1AW"
        assert result[0].station_callsign == "K1ABC"

    def test_type_indicator_is_ignored(self):
        """Test <tag:length:type> specifiers."""
        adif = "<call:4:S>W1AW<station_callsign:5:S>K1ABC<qso_date:8:D>20240115<time_on:4:T>1430<freq:6:N>14.074<eor>"
        result = parse_adif(adif)

        assert result[0].qso_date == date(2024, 1, 15)
        assert result[0].freq == 14.074

    def test_value_containing_angle_brackets(self):
        """Test lengths are authoritative even when values contain < and >."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<comment:9>a<b>c<d>e<eor>"
        result = parse_adif(adif)

        assert result[0].comment == "a<b>c<d>e"

    def test_time_with_seconds(self):
        """Test HHMMSS times keep their seconds."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:6>143015<time_off:4>1445<eor>"
        result = parse_adif(adif)

        assert result[0].time_on == time(14, 30, 15)
        assert result[0].time_off == time(14, 45, 0)

    def test_header_is_skipped(self):
        """Test a free-text header terminated by <eoh> is discarded."""
        adif = (
            "Exported by some logger\n"
            "<adif_ver:5>3.1.4<programid:6>Logger<eoh>\n"
            "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<eor>\n"
        )
        result = parse_adif(adif)

        assert len(result) == 1
        assert "adif_ver" not in result[0].additional_fields
        assert "programid" not in result[0].additional_fields

    def test_header_starting_with_field(self):
        """Test a header that begins directly with a field."""
        adif = "<adif_ver:5>3.1.4<eoh><call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<eor>"
        result = parse_adif(adif)

        assert len(result) == 1
        assert dict(result[0].additional_fields) == {}

    def test_parse_empty_adif(self):
        """Test parsing empty or header-only input."""
        assert parse_adif("") == []
        assert parse_adif("   \n") == []
        assert parse_adif("Header only<eoh>\n") == []

    def test_back_to_back_eor_is_skipped(self):
        """Test an empty record between two <eor> markers yields nothing."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<eor><eor>"
        assert len(parse_adif(adif)) == 1

    def test_markers_with_zero_length(self):
        """Test <eoh:0> and <eor:0> act as plain markers."""
        adif = (
            "<adif_ver:5>3.1.4<EOH:0>"
            "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<eor:0>"
            "<call:5>K2DEF<station_callsign:5>K1ABC<qso_date:8>20240116<time_on:4>0800<EOR:0:S>"
        )
        result = parse_adif(adif)

        assert [q.call for q in result] == ["W1AW", "K2DEF"]
        assert "eor" not in result[0].additional_fields
        assert "adif_ver" not in result[0].additional_fields

    def test_non_ascii_value_uses_byte_length(self):
        """Test lengths count UTF-8 bytes."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<name:5>José<qth:7>Zürich<eor>"
        result = parse_adif(adif)

        assert result[0].name == "José"
        assert result[0].qth == "Zürich"

    def test_logid_field(self):
        """Test the QRZ logid is available on fetched records."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<app_qrzlog_logid:4>1234<eor>"
        result = parse_adif(adif)

        assert result[0].logid == 1234
        assert result[0].additional_fields["app_qrzlog_logid"] == "1234"


class TestADIFParseErrors:
    """Test malformed ADIF is rejected with ADIFParseError."""

    def test_missing_eor(self):
        """Test a record with no <eor> fails."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430"
        with pytest.raises(ADIFParseError, match="not terminated"):
            parse_adif(adif)

    def test_declared_length_too_long(self):
        """Test a length longer than the value is detected."""
        adif = "<call:5>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<eor>"
        with pytest.raises(ADIFParseError):
            parse_adif(adif)

    def test_declared_length_too_short(self):
        """Test a length shorter than the value is detected."""
        adif = "<call:3>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<eor>"
        with pytest.raises(ADIFParseError, match="length"):
            parse_adif(adif)

    def test_length_beyond_end_of_input(self):
        """Test a length running past the end of the buffer."""
        with pytest.raises(ADIFParseError, match="remain"):
            parse_adif("<call:40>W1AW<eor>")

    def test_length_not_a_number(self):
        """Test non-numeric and negative lengths."""
        with pytest.raises(ADIFParseError, match="invalid length"):
            parse_adif("<call:x>W1AW<eor>")
        with pytest.raises(ADIFParseError, match="invalid length"):
            parse_adif("<call:-4>W1AW<eor>")

    def test_field_without_length(self):
        """Test <call> without a length."""
        with pytest.raises(ADIFParseError, match="no length"):
            parse_adif("<call>W1AW<eor>")

    def test_unterminated_specifier(self):
        """Test a '<' with no closing '>'."""
        with pytest.raises(ADIFParseError, match="unterminated"):
            parse_adif("<call:4")

    def test_bad_date(self):
        """Test an impossible date."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20241345<time_on:4>1430<eor>"
        with pytest.raises(ADIFParseError, match="qso_date"):
            parse_adif(adif)

    def test_bad_time(self):
        """Test a time with the wrong number of digits."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:3>143<eor>"
        with pytest.raises(ADIFParseError, match="time_on"):
            parse_adif(adif)

    def test_bad_frequency(self):
        """Test a partially numeric frequency is rejected."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<freq:9>14.074MHz<eor>"
        with pytest.raises(ADIFParseError, match="freq"):
            parse_adif(adif)

    def test_missing_required_field(self):
        """Test records are validated like the builder."""
        adif = "<call:4>W1AW<qso_date:8>20240115<time_on:4>1430<eor>"
        with pytest.raises(ADIFParseError, match="station_callsign") as exc_info:
            parse_adif(adif)
        assert isinstance(exc_info.value.__cause__, InvalidParamsError)

    def test_utf8_split(self):
        """Test a length ending inside a multi-byte character."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<name:4>José<eor>"
        with pytest.raises(ADIFParseError):
            parse_adif(adif)

    def test_eor_inside_header(self):
        """Test free text followed by a record with no <eoh>."""
        with pytest.raises(ADIFParseError, match="header"):
            parse_adif("Some header text <call:4>W1AW<eor>")

    def test_marker_with_value_length(self):
        """Test <eor:2> is not mistaken for a field or a bare marker."""
        adif = "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430<eor:2>xx"
        with pytest.raises(ADIFParseError, match="declares a value"):
            parse_adif(adif)

    @pytest.mark.parametrize("delta", [-1, 1])
    @pytest.mark.parametrize("tag", WELL_KNOWN_FIELDS + ("gridsquare",))
    def test_wrong_length_for_any_tag(self, tag, delta):
        """Test a declared length off by one is caught for every tag."""
        fields = "".join(
            f"<{name}:{len(value) + (delta if name == tag else 0)}>{value}"
            for name, value in SAMPLE_VALUES.items()
        )
        with pytest.raises(ADIFParseError):
            parse_adif(fields + "<eor>")


class TestADIFWriting:
    """Test ADIF encoding."""

    def test_to_adif_field_order(self):
        """Test well-known fields come first in fixed order, then extras."""
        qso = build_qso(band="20m", mode="SSB", rst_sent="59")
        qso = qso.to_builder().additional_field("gridsquare", "FN31").build()

        adif = to_adif(qso)

        assert adif == (
            "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430"
            "<band:3>20m<mode:3>SSB<rst_sent:2>59<gridsquare:4>FN31<eor>"
        )

    def test_to_adif_omits_missing_fields(self):
        """Test absent optional fields aren't written as empty values."""
        adif = to_adif(build_qso())
        assert "band" not in adif
        assert ":0>" not in adif

    def test_to_adif_seconds(self):
        """Test times with seconds use HHMMSS."""
        adif = to_adif(build_qso(time_on=time(14, 30, 15)))
        assert "<time_on:6>143015" in adif

    def test_to_adif_byte_lengths(self):
        """Test lengths are byte counts for non-ASCII values."""
        adif = to_adif(build_qso(name="José"))
        assert "<name:5>José" in adif

    def test_make_field(self):
        """Test field helper."""
        assert make_field("call", "W1AW") == "<call:4>W1AW"
        assert field_length("Zürich") == 7

    def test_to_adif_file(self):
        """Test a full document with header."""
        qsos = [build_qso(), build_qso(call="K2DEF")]
        text = to_adif_file(qsos, program_id="TestLogger", created=datetime(2024, 1, 15, 12, 0, 0))

        lines = text.splitlines()
        assert lines[0] == "Generated by TestLogger"
        assert "<created_timestamp:15>20240115 120000" in text
        assert "<programid:10>TestLogger" in text
        assert lines[-1].startswith("<call:5>K2DEF")
        assert parse_adif(text) == qsos


class TestADIFRoundTrip:
    """Test decode(encode(record)) reproduces the record."""

    def test_round_trip_all_fields(self):
        """Test every well-known field survives a round trip."""
        qso = (
            QsoRecord.builder()
            .call("dl1ab")
            .station_callsign("k1abc/p")
            .qso_date("20240115")
            .time_on("143015")
            .qso_date_off("20240116")
            .time_off("0005")
            .band("20m")
            .mode("FT8")
            .freq(14.074)
            .rst_sent("-10")
            .rst_rcvd("+03")
            .name("Hans <Müller>")
            .qth("Berlin")
            .comment("tnx fer QSO & 73")
            .build()
        )

        decoded = parse_adif(to_adif(qso))

        assert decoded == [qso]
        assert decoded[0].call == "DL1AB"
        assert decoded[0].station_callsign == "K1ABC/P"

    @pytest.mark.parametrize("freq", [1e16, 1e-05, 0.0001234, 14.074, 7.0])
    def test_frequency_never_uses_exponent(self, freq):
        """Test very large and very small frequencies survive a round trip."""
        qso = build_qso(freq=freq)
        adif = to_adif(qso)

        assert "e" not in adif.split("<freq:")[1].split("<")[0]
        assert parse_adif(adif) == [qso]

    def test_format_freq(self):
        """Test the fixed-point text of exponent-form floats."""
        assert format_freq(1e16) == "10000000000000000"
        assert format_freq(1e-05) == "0.00001"
        assert format_freq(14.074) == "14.074"

    def test_unknown_fields_preserved(self):
        """Test unknown tags round-trip through additional_fields."""
        adif = (
            "<call:4>W1AW<station_callsign:5>K1ABC<qso_date:8>20240115<time_on:4>1430"
            "<MY_GRIDSQUARE:4>EM12<sig_info:6>K-0001<eor>"
        )
        qso = parse_adif(adif)[0]

        assert dict(qso.additional_fields) == {"my_gridsquare": "EM12", "sig_info": "K-0001"}
        again = parse_adif(to_adif(qso))[0]
        assert again == qso
        assert list(again.additional_fields) == ["my_gridsquare", "sig_info"]
