"""
Pytest configuration and fixtures.
"""

import os
import sys

# Add project directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# Set test environment
os.environ["TESTING"] = "1"
os.environ.pop("QRZ_API_URL", None)
os.environ.pop("QRZ_API_KEY", None)

import pytest

from qso_record import QsoRecord


TEST_API_KEY = "ABCD-1234-EF56-7890"
TEST_USER_AGENT = "LogbookTests/1.0 (W1TEST)"


@pytest.fixture
def api_key():
    return TEST_API_KEY


@pytest.fixture
def user_agent():
    return TEST_USER_AGENT


@pytest.fixture
def sample_qso():
    """A minimal valid QSO."""
    return (
        QsoRecord.builder()
        .call("W1AW")
        .station_callsign("K1ABC")
        .qso_date("20240115")
        .time_on("1430")
        .band("20m")
        .mode("SSB")
        .build()
    )
