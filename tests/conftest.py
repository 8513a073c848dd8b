"""Pytest configuration for tests."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env.test file if it exists
env_test_path = Path(__file__).parent.parent / ".env.test"
if env_test_path.exists():
    load_dotenv(env_test_path)

# Set test environment variables before any imports (only if not already set)
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("APPRAISAL_YEAR", "2025")
os.environ.setdefault("EXPOSE_ERROR_DETAILS", "true")


@pytest.fixture
def store():
    """Fresh in-memory store installed as the active backend."""
    from app.repositories.store import configure_store

    return configure_store("memory")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "e2e: marks tests as end-to-end HTTP tests (slower)")
    config.addinivalue_line("markers", "unit: marks tests as unit tests (fast)")
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (medium speed)"
    )
