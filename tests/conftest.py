"""Pytest configuration and fixtures shared across all test modules.

Environment is pinned before any app module is imported so settings never
pick up a developer's .env file or real counter-service credentials.
"""

import os
from unittest.mock import Mock

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ["APP_ENV"] = "testing"
os.environ.pop("UPSTASH_REDIS_REST_URL", None)
os.environ.pop("UPSTASH_REDIS_REST_TOKEN", None)
os.environ.setdefault("LOG_LEVEL", "DEBUG")


@pytest.fixture
def clock() -> Mock:
    """Controllable time source shared by counters under test."""
    return Mock(return_value=1000.0)
