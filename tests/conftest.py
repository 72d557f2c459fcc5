import pytest

import runway.persistence as persistence
from runway.config import EngineConfig
from runway.persistence import InMemoryExecutionRepository
from runway.transports import InMemoryTransport

from fixtures.fakes import make_services


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    """Keep tests away from a developer's config file and database settings."""
    monkeypatch.setenv("RUNWAY_CONFIG", str(tmp_path / "missing.yaml"))
    for name in ("RUNWAY_DATABASE_URL", "DATABASE_URL", "RUNWAY_RECORDS_URL", "RUNWAY_TRANSPORT"):
        monkeypatch.delenv(name, raising=False)
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None


@pytest.fixture
def services():
    return make_services()


@pytest.fixture
def repository():
    return InMemoryExecutionRepository()


@pytest.fixture
def transport():
    return InMemoryTransport()


@pytest.fixture
def engine_config():
    return EngineConfig(backoff_base=0, backoff_jitter=0)
