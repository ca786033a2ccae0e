"""
Exception types for the QRZ Logbook client.

Every failure raised by the codec, the builders, the response parser, the
paging engine or the transport derives from QRZLogbookError, so callers can
branch on the concrete class instead of inspecting messages.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class FieldProblem:
    """One missing or invalid field reported by a builder."""
    field: str
    problem: str

    def __str__(self) -> str:
        return f"{self.field}: {self.problem}"


class QRZLogbookError(Exception):
    """Base class for all QRZ Logbook client errors."""
    pass


class QRZHTTPError(QRZLogbookError):
    """Transport-level failure (connection, timeout, TLS, bad HTTP status)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(f"HTTP error: {message}")
        self.status_code = status_code


class QRZAPIError(QRZLogbookError):
    """The service reported a logical failure, or answered something we can't use."""

    def __init__(self, reason: str):
        super().__init__(f"API error: {reason}")
        self.reason = reason


class QRZAuthError(QRZLogbookError):
    """Authentication failed or the key lacks the required privileges."""

    def __init__(self, message: str = "Authentication failed - invalid API key or insufficient privileges"):
        super().__init__(message)


class InvalidKeyError(QRZLogbookError):
    """The API key is malformed. Raised before any request is sent."""

    def __init__(self, message: str = "Invalid API key format"):
        super().__init__(message)


class InvalidUserAgentError(QRZLogbookError):
    """The User-Agent is empty, too long, or a generic client signature."""

    def __init__(self, message: str = "Invalid user agent: must be 128 characters or less and identifiable"):
        super().__init__(message)


class ADIFParseError(QRZLogbookError):
    """ADIF text could not be decoded."""

    def __init__(self, message: str):
        super().__init__(f"ADIF parsing error: {message}")
        self.message = message


class InvalidParamsError(QRZLogbookError):
    """A record or filter failed validation."""

    def __init__(self, problems):
        if isinstance(problems, str):
            problems = [FieldProblem("params", problems)]
        self.problems: List[FieldProblem] = list(problems)
        details = "; ".join(str(p) for p in self.problems)
        super().__init__(f"Invalid parameters: {details}")
