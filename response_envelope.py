"""
QRZ Logbook API response parsing.

The service answers every action with a form-encoded body:

    RESULT=OK&COUNT=2&LOGIDS=10:11&ADIF=<percent-encoded ADIF>

This module turns that body into a ResponseEnvelope and classifies it.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import unquote, unquote_plus

from adif_codec import parse_adif
from qrz_errors import QRZAPIError, QRZAuthError
from qso_record import QsoRecord

logger = logging.getLogger(__name__)

SUCCESS_RESULTS = ("OK", "PARTIAL")

# Keys the service is known to send; used to find where a raw ADIF value ends
KNOWN_KEYS = ("RESULT", "REASON", "COUNT", "LOGIDS", "LOGID", "DATA", "ADIF")

_KEY_RE = re.compile(r"[A-Za-z][A-Za-z0-9_]*", re.ASCII)
_ADIF_KEY_RE = re.compile(r"(?:^|&)ADIF=", re.IGNORECASE)
_NEXT_KEY_RE = re.compile(r"&(?:" + "|".join(KNOWN_KEYS) + r")=")
_ID_SPLIT_RE = re.compile(r"[:,]")

# Whole words only, so "author" or "authority" don't count
_AUTH_RE = re.compile(
    r"\b(?:auth|authentication|authorization|api key|access key|invalid key"
    r"|privileges?|not authorized|unauthorized)\b",
    re.IGNORECASE,
)


def _parse_int(key: str, value: str) -> int:
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        raise QRZAPIError(f"malformed response: {key} is not an integer: {value!r}")
    return int(value)


def _parse_ids(key: str, value: str) -> List[int]:
    return [_parse_int(key, part) for part in _ID_SPLIT_RE.split(value) if part.strip()]


def _split_pairs(text: str) -> Dict[str, str]:
    """
    Split "K=v&K=v" into raw (still encoded) values.

    A fragment that doesn't look like KEY=value is a stray "&" inside the
    previous value and is glued back on.
    """
    pairs: Dict[str, str] = {}
    last_key = None
    for fragment in text.split("&"):
        key, sep, value = fragment.partition("=")
        if sep and _KEY_RE.fullmatch(key):
            last_key = key.upper()
            pairs[last_key] = value
        elif last_key is not None:
            pairs[last_key] += "&" + fragment
        elif fragment:
            raise QRZAPIError(f"malformed response: {text[:40]!r}")
    return pairs


@dataclass
class ResponseEnvelope:
    """Parsed response body. Built by from_text(), consumed immediately."""
    result: Optional[str] = None
    reason: Optional[str] = None
    count: Optional[int] = None
    logids: List[int] = field(default_factory=list)
    logid: Optional[int] = None
    adif: Optional[str] = None
    data: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_text(cls, text: str) -> "ResponseEnvelope":
        """
        Parse a response body without classifying it.

        Raises:
            QRZAPIError: If the body is not in KEY=value form at all
        """
        text = (text or "").strip()
        if not text:
            raise QRZAPIError("malformed response: empty body")

        # The ADIF payload may carry raw "&"; it runs until the next known key
        head, raw_adif = text, None
        adif_key = _ADIF_KEY_RE.search(text)
        if adif_key:
            head, rest = text[:adif_key.start()], text[adif_key.end():]
            m = _NEXT_KEY_RE.search(rest)
            if m:
                raw_adif, head = rest[:m.start()], head + rest[m.start():]
            else:
                raw_adif = rest

        raw_pairs = _split_pairs(head) if head else {}
        if not raw_pairs and raw_adif is None:
            raise QRZAPIError(f"malformed response: {text[:40]!r}")

        fields = {key: unquote_plus(value) for key, value in raw_pairs.items()}
        adif = None
        if raw_adif is not None:
            adif = unquote(raw_adif)
            # Some responses entity-escape the ADIF brackets
            if "&lt;" in adif:
                adif = html.unescape(adif)
            fields["ADIF"] = adif

        envelope = cls(
            result=fields.get("RESULT", "").strip().upper() or None,
            reason=fields.get("REASON"),
            adif=adif,
            data=fields.get("DATA"),
            fields=fields,
        )
        if "COUNT" in fields:
            envelope.count = _parse_int("COUNT", fields["COUNT"])
        if "LOGIDS" in fields:
            envelope.logids = _parse_ids("LOGIDS", fields["LOGIDS"])
        if "LOGID" in fields and fields["LOGID"].strip():
            envelope.logid = _parse_int("LOGID", fields["LOGID"])
        return envelope

    @property
    def is_success(self) -> bool:
        return self.result in SUCCESS_RESULTS

    def raise_for_result(self) -> None:
        """
        Raise the matching error unless the service reported success.

        Raises:
            QRZAPIError: On RESULT=FAIL (with REASON verbatim) or an unrecognized result
            QRZAuthError: On RESULT=AUTH, or no RESULT with an authentication reason
        """
        if self.is_success:
            return
        if self.result == "FAIL":
            raise QRZAPIError(self.reason if self.reason is not None else "Unknown error")
        if self.result == "AUTH":
            if self.reason:
                raise QRZAuthError(f"Authentication failed: {self.reason}")
            raise QRZAuthError()
        if self.result is None:
            reason = self.reason or ""
            if _AUTH_RE.search(reason):
                raise QRZAuthError(f"Authentication failed: {self.reason}")
            raise QRZAPIError("malformed response: missing RESULT")
        raise QRZAPIError(f"malformed response: unexpected RESULT {self.result!r}")

    def records(self) -> List[QsoRecord]:
        """
        Decode the embedded ADIF payload. No payload means no records.
        """
        if not self.adif or not self.adif.strip():
            return []
        return parse_adif(self.adif)

    def status_data(self) -> Dict[str, str]:
        """
        Logbook status values from a STATUS response.

        DATA comes either as "key=value&key=value" or "KEY:value,KEY:value";
        any other top-level field the service sent is included as well.
        """
        data = {
            key: value for key, value in self.fields.items()
            if key not in KNOWN_KEYS
        }
        if self.data:
            if "=" in self.data:
                pairs = (item.partition("=") for item in self.data.split("&"))
            else:
                pairs = (item.partition(":") for item in self.data.split(","))
            for key, sep, value in pairs:
                if sep and key.strip():
                    data[key.strip()] = value.strip()
        return data


def parse_qrz_response(text: str) -> ResponseEnvelope:
    """
    Parse and classify a QRZ API response.

    Args:
        text: Raw response text

    Returns:
        The envelope of a successful (OK or PARTIAL) response

    Raises:
        QRZAPIError: If the service reported a failure or the body is malformed
        QRZAuthError: If the key was rejected
    """
    envelope = ResponseEnvelope.from_text(text)
    logger.debug(
        f"QRZ response: RESULT={envelope.result} COUNT={envelope.count} "
        f"LOGIDS={len(envelope.logids)} ADIF={'yes' if envelope.adif else 'no'}"
    )
    envelope.raise_for_result()
    return envelope
