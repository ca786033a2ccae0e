"""
Centralized configuration for the QRZ Logbook client.

All configurable values are loaded from environment variables with sensible defaults.
"""

import os


def _require_env(name: str, test_default: str) -> str:
    """
    Read a credential the client can't run without, such as QRZ_API_KEY.

    Surrounding whitespace is dropped, so a blank value counts as unset. Under
    TESTING the given stand-in is returned instead of failing.
    """
    value = os.getenv(name, "").strip()
    if value:
        return value

    if os.getenv("TESTING"):
        return test_default

    raise ValueError(
        f"{name} is not set. Export it before building a QRZLogbookClient from the environment."
    )


class Config:
    """Client configuration loaded from environment variables."""

    # QRZ Logbook API endpoint
    QRZ_API_URL: str = os.getenv("QRZ_API_URL", "https://logbook.qrz.com/api")

    # QRZ asks for an identifiable agent: application/version (callsign)
    QRZ_USER_AGENT: str = os.getenv("QRZ_USER_AGENT", "")

    # Per-request timeout handed to the HTTP transport
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("QRZ_HTTP_TIMEOUT", "30"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Testing mode
    TESTING: bool = bool(os.getenv("TESTING", ""))


# Global config instance
config = Config()
