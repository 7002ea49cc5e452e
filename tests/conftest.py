"""Pytest configuration and fixtures."""

from datetime import UTC, datetime

import pytest

from base_impression.social.models import ActivityWindow


@pytest.fixture
def owner_address() -> str:
    """Sample wallet address for testing."""
    return "0x1234567890abcdef1234567890abcdef12345678"


@pytest.fixture
def token_address() -> str:
    """Campaign token contract address."""
    return "0xbe7c48aad42eea060150cb64f94b6448a89c1cef"


@pytest.fixture
def campaign_window() -> ActivityWindow:
    """The campaign snapshot window."""
    return ActivityWindow(
        start=datetime(2025, 11, 1, 0, 1, tzinfo=UTC),
        end=datetime(2026, 1, 15, 23, 49, tzinfo=UTC),
    )
