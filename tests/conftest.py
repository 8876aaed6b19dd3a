"""
Pytest configuration and shared fixtures for relay tests.
"""

import base64
import gzip
from unittest.mock import MagicMock

import pytest

from youtrack_relay.config import AppConfig, PollingConfig, TelegramConfig, TrackerConfig


def make_response(status_code=200, json_data=None, json_error=None):
    """Build a requests.Response stand-in."""
    response = MagicMock()
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = json_data
    return response


def encode_content(text: str) -> str:
    """Encode text the way YouTrack encodes notification fields."""
    return base64.b64encode(gzip.compress(text.encode("utf-8"))).decode("ascii")


@pytest.fixture
def tracker_config() -> TrackerConfig:
    return TrackerConfig(
        base_url="https://youtrack.example.com",
        token="perm:test-token",
        project_id="0-1",
        timeout=None,
    )


@pytest.fixture
def app_config(tracker_config) -> AppConfig:
    return AppConfig(
        tracker=tracker_config,
        telegram=TelegramConfig(token="123:abc", chat_id=4242),
        polling=PollingConfig(interval_seconds=60, dedup_max_size=1000),
    )


@pytest.fixture
def mock_session():
    session = MagicMock()
    session.headers = {}
    return session
