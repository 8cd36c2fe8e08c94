"""Fixtures for route tests: a bare app wired with in-memory state."""

from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import UTC, datetime
from typing import Any

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.middleware.exception_handlers import register_exception_handlers
from api.routes import socket
from api.routes.v1 import router as v1_router
from api.services.record_store import InMemoryRecordStore
from api.websocket.manager import ConnectionRegistry
from core.intelligence import IntelligenceGateway


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry(idle_timeout_seconds=600, lock_stripes=8)


@pytest.fixture
def provider(make_provider: Callable[..., Any]) -> Any:
    return make_provider()


@pytest.fixture
def app(store: InMemoryRecordStore, registry: ConnectionRegistry, provider: Any) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(v1_router, prefix="/api/v1")
    app.include_router(socket.router)

    app.state.store = store
    app.state.registry = registry
    app.state.gateway = IntelligenceGateway(provider, timeout=1.0)
    app.state.db_pool = None
    app.state.startup_time = datetime.now(UTC)
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client
