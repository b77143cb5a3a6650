"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from src.core.models import AttemptBundle, UserProfile
from src.store.app_store import AppStore, create_store
from src.store.persistence import MemoryStorage


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-process mock backend)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment: mock backend, no latency, temp storage."""
    return Settings(
        _env_file=None,
        use_mock_data=True,
        mock_latency_ms=0,
        notification_timeout_ms=50,
        storage_dir=tmp_path / "state",
    )


@pytest.fixture
def storage():
    """Empty in-memory key/value backend."""
    return MemoryStorage()


@pytest.fixture
def store(settings, storage) -> AppStore:
    """Store booted from empty storage."""
    app_store = create_store(settings, storage=storage)
    yield app_store
    app_store.close()


@pytest.fixture
def future():
    """An instant one hour from now."""
    return datetime.now(timezone.utc) + timedelta(hours=1)


@pytest.fixture
def sample_profile():
    """Provide a sample student profile."""
    return UserProfile(
        id=201,
        username="student.demo",
        first_name="Aziz",
        last_name="Tursunov",
        role="student",
    )


@pytest.fixture
def sample_bundle():
    """Provide an attempt bundle with three questions."""
    now = datetime.now(timezone.utc)
    return AttemptBundle.model_validate({
        "attempt": {
            "id": 1001,
            "testId": 1,
            "status": "in_progress",
            "startedAt": now.isoformat(),
            "expiresAt": (now + timedelta(minutes=15)).isoformat(),
        },
        "test": {
            "id": 1,
            "title": "Algebra Basics",
            "timeLimitSec": 900,
            "questions": [
                {"id": 11, "prompt": "Solve 2x + 3 = 11", "type": "single",
                 "options": [{"id": 111, "text": "3"}, {"id": 112, "text": "4"}]},
                {"id": 12, "prompt": "Describe a prime", "type": "short"},
                {"id": 13, "prompt": "What is 7 * 6?", "type": "numeric"},
            ],
        },
    })
