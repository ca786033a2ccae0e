"""
Logging setup for the QRZ Logbook client and its scripts.
"""

import logging
import re
from typing import Optional

from config import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Loggers that may see request parameters or URLs
REDACTED_LOGGERS = ("httpx", "qrz_client", "pagination")


class SensitiveDataFilter(logging.Filter):
    """Filter to redact API keys and passwords from log messages."""

    SENSITIVE_PATTERNS = [
        (re.compile(r'([?&]password=)[^&\s"]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'([?&]api_key=)[^&\s"]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'((?:^|[?&\s])key=)[^&\s"]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r"('KEY':\s*')[^']+", re.IGNORECASE), r"\1[REDACTED]"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            msg = str(record.msg)
            for pattern, replacement in self.SENSITIVE_PATTERNS:
                msg = pattern.sub(replacement, msg)
            record.msg = msg
        return True


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging and attach the redaction filter.

    Args:
        level: Log level name; defaults to config.LOG_LEVEL
    """
    logging.basicConfig(
        level=getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    sensitive_filter = SensitiveDataFilter()
    for name in REDACTED_LOGGERS:
        target = logging.getLogger(name)
        if not any(isinstance(f, SensitiveDataFilter) for f in target.filters):
            target.addFilter(sensitive_filter)
