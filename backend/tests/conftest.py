"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterator
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.core.assistant import VoiceCommandInterpreter
from voicetasks.core.config import Settings, reload_settings
from voicetasks.core.database import create_database_engine, create_session_factory, create_tables

# Credentials from the developer's shell must not leak into tests
CREDENTIAL_ENV_VARS = (
    "OPENAI_API_KEY",
    "OPENAI_KEY",
    "VOICETASKS_OPENAI_API_KEY",
    "MICROSOFT_CLIENT_ID",
    "MICROSOFT_TENANT_ID",
    "MICROSOFT_CLIENT_SECRET",
    "MICROSOFT_ACCESS_TOKEN",
    "VOICETASKS_MICROSOFT_CLIENT_ID",
    "VOICETASKS_MICROSOFT_TENANT_ID",
    "VOICETASKS_MICROSOFT_CLIENT_SECRET",
    "VOICETASKS_MICROSOFT_ACCESS_TOKEN",
)


@pytest.fixture(autouse=True)
def reset_prometheus_registry() -> Iterator[None]:
    """Reset Prometheus registry before each test to avoid duplicate metric registration.

    setup_metrics() registers HTTP metrics in the global Prometheus registry, and
    when multiple tests create apps they would try to register the same metrics
    multiple times, causing "Duplicated timeseries" errors.
    """
    for collector in list(REGISTRY._collector_to_names.keys()):
        REGISTRY.unregister(collector)

    yield

    for collector in list(REGISTRY._collector_to_names.keys()):
        REGISTRY.unregister(collector)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Settings]:
    """Point all data (config, database, logs) at a temporary directory."""
    data_dir = tmp_path / "data"
    (data_dir / "config").mkdir(parents=True)

    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("VOICETASKS_DATA_DIR", str(data_dir))
    monkeypatch.setenv("VOICETASKS_ENV", "testing")

    yield reload_settings()

    monkeypatch.undo()
    reload_settings()


@pytest.fixture
def settings(isolated_settings: Settings) -> Settings:
    return isolated_settings


@pytest.fixture
async def db_session(tmp_path: Path) -> AsyncIterator[SQLModelAsyncSession]:
    """Session on a fresh SQLite database with all tables created."""
    engine = create_database_engine(tmp_path / "test.db", echo=False)
    await create_tables(engine)
    session_factory = create_session_factory(engine)

    async with session_factory() as session:
        yield session

    await engine.dispose()


def make_completion_client(*payloads: dict[str, Any] | str | Exception) -> SimpleNamespace:
    """Stand-in for AsyncOpenAI returning the given JSON payloads in order.

    Exceptions are raised instead of returned.
    """
    responses: list[Any] = []
    for payload in payloads:
        if isinstance(payload, Exception):
            responses.append(payload)
            continue
        content = payload if isinstance(payload, str) else json.dumps(payload)
        responses.append(
            SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
        )

    create = AsyncMock(side_effect=responses)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    from voicetasks.app import create_app

    return create_app()


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Test client with the lifespan running (tables created)."""
    with TestClient(app) as test_client:
        yield test_client


def use_interpreter(app: FastAPI, settings: Settings, *payloads: Any) -> SimpleNamespace:
    """Install an interpreter backed by a stub completion client; returns the stub."""
    completion_client = make_completion_client(*payloads)
    app.state.interpreter = VoiceCommandInterpreter(settings, client=completion_client)
    return completion_client


@pytest.fixture
def completion_client() -> Any:
    """Factory for stub completion clients: completion_client(payload, ...)."""
    return make_completion_client


@pytest.fixture
def install_interpreter(app: FastAPI, settings: Settings) -> Any:
    """Factory installing a stubbed interpreter on the app: install_interpreter(payload, ...)."""

    def install(*payloads: Any) -> SimpleNamespace:
        return use_interpreter(app, settings, *payloads)

    return install
