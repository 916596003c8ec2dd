"""Pytest configuration and shared fixtures."""

import os
import sys
import tempfile
from pathlib import Path

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure source tree is importable without editable install
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


def pytest_configure(config):
    """Pin the environment before any settings are read."""
    config.addinivalue_line("markers", "integration: needs a real database or provider")

    # Overrides developer shell and .env values on purpose.
    os.environ["ENVIRONMENT"] = "test"
    os.environ["GENERATION_PROVIDER"] = "fake"
    os.environ["USE_FAKE_PROVIDERS"] = "false"
    os.environ["API_KEY"] = "test-api-key"
    os.environ["LOG_LEVEL"] = "WARNING"
    # Per-run temp SQLite file for code paths that open their own sessions
    # (API, worker, CLI). Never write DB files into the repo root.
    run_dir = Path(tempfile.mkdtemp(prefix="adstudio_pytest_"))
    os.environ["DATABASE_URL"] = f"sqlite:///{run_dir / 'test_default.db'}"


LOCAL_HOSTS = {"test", "testserver", "localhost", "127.0.0.1", "0.0.0.0"}


def _check_host(url) -> None:  # type: ignore[no-untyped-def]
    parsed = url if isinstance(url, httpx.URL) else httpx.URL(url)
    if parsed.scheme in {"http", "https"} and parsed.host not in LOCAL_HOSTS:
        raise RuntimeError(f"External HTTP blocked in tests: {parsed}")


@pytest.fixture(autouse=True)
def block_external_http(monkeypatch):
    """Any httpx request to a non-local host fails the test."""
    real_sync = httpx.Client.request
    real_async = httpx.AsyncClient.request

    def sync_request(self, method, url, *args, **kwargs):  # type: ignore[no-untyped-def]
        _check_host(url)
        return real_sync(self, method, url, *args, **kwargs)

    async def async_request(self, method, url, *args, **kwargs):  # type: ignore[no-untyped-def]
        _check_host(url)
        return await real_async(self, method, url, *args, **kwargs)

    monkeypatch.setattr(httpx.Client, "request", sync_request)
    monkeypatch.setattr(httpx.AsyncClient, "request", async_request)
    yield


def pytest_sessionfinish(session, exitstatus):  # noqa: ARG001
    """Dispose the global engine so SQLite connections are not leaked."""
    from adstudio.storage.database import shutdown_db

    shutdown_db()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def db_session():
    """Isolated in-memory database per test."""
    from adstudio.storage.models import Base

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def provider():
    """Fake provider whose jobs stay pending until completed or failed explicitly."""
    from adstudio.generation.providers import FakeGenerationProvider

    return FakeGenerationProvider(auto_complete=False)


@pytest.fixture
def ledger(db_session):
    from adstudio.costs.ledger import CostLedger

    return CostLedger(db_session)


@pytest.fixture
def lifecycle(db_session, provider, ledger):
    from adstudio.generation.lifecycle import GenerationLifecycle

    return GenerationLifecycle(db_session, provider, ledger=ledger, timeout_seconds=600)


@pytest.fixture
def machine(db_session, lifecycle):
    from adstudio.pipeline.state_machine import PipelineStateMachine

    return PipelineStateMachine(db_session, lifecycle=lifecycle)


@pytest.fixture
def project(db_session):
    from adstudio.storage.repositories import ProjectRepository

    return ProjectRepository(db_session).create(name="Spring launch")


@pytest.fixture
def scenes(db_session, project):
    """Four scenes with segment indexes 1..4."""
    from adstudio.storage.repositories import ScriptRepository

    repo = ScriptRepository(db_session)
    script = repo.create(project.id)
    sections = ["hook", "problem", "solution", "cta"]
    return [
        repo.add_scene(script.id, index, section, script_text=f"Line {index}")
        for index, section in enumerate(sections, start=1)
    ]


@pytest.fixture
def api_headers() -> dict[str, str]:
    """Default API headers for authenticated endpoints."""
    from adstudio.config import settings

    return {"X-API-Key": settings.api_key}


@pytest.fixture
async def async_client():
    """httpx AsyncClient wired to the FastAPI app with lifespan enabled."""
    from httpx import ASGITransport, AsyncClient

    from adstudio.api.server import app

    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture
def api_provider():
    """Per-test fake provider injected into the API's provider dependency."""
    from adstudio.api.dependencies import get_provider
    from adstudio.api.server import app
    from adstudio.generation.providers import FakeGenerationProvider

    fake = FakeGenerationProvider(auto_complete=False)
    app.dependency_overrides[get_provider] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_provider, None)
