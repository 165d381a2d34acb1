"""Pytest configuration and fixtures."""

import os

import pytest

# Set before any spec_engine module builds a logger or reads settings
os.environ["SPEC_ENGINE_ENV"] = "test"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["REASONING_PROVIDER"] = "openai"

from spec_engine.core.config import get_settings  # noqa: E402
from spec_engine.db.store import get_store  # noqa: E402
from tests.fakes.fake_reasoner import ScriptedReasoner  # noqa: E402


@pytest.fixture(autouse=True)
def setup_test_env():
    """Fresh settings and an empty store for every test."""
    get_settings.cache_clear()
    get_store().reset()
    yield
    get_store().reset()
    get_settings.cache_clear()


@pytest.fixture
def reasoner():
    """Scripted reasoner with the bulk-archive responses."""
    return ScriptedReasoner()
