"""
Pytest configuration and fixtures for Modcase tests.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Keep test runs from writing into the project's logs/ directory
os.environ.setdefault("MODCASE_LOG_DIR", str(Path(tempfile.gettempdir()) / "modcase-test-logs"))

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from modcase.database.db_cache import GuildCache  # noqa: E402
from modcase.database.db_connection import ConnectionManager  # noqa: E402
from modcase.moderation.case_manager import CaseManager  # noqa: E402
from modcase.moderation.config_store import ModerationConfigStore  # noqa: E402


class FakeClock:
    """Manually advanced replacement for ``time.monotonic``."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def db(tmp_path):
    """An opened connection to a fresh on-disk database."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "modcase.db")
    yield manager
    await manager.close()


@pytest.fixture
def config_cache(clock) -> GuildCache:
    return GuildCache("moderation_config", default_ttl_seconds=60, clock=clock)


@pytest.fixture
def config_store(db, config_cache) -> ModerationConfigStore:
    return ModerationConfigStore(db, config_cache)


@pytest.fixture
def case_manager(db, config_store) -> CaseManager:
    return CaseManager(db, config_store)
