from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.routes import socket
from api.routes.v1 import router as v1_router
from api.services.record_store import InMemoryRecordStore, PostgresRecordStore, RecordStore, seed_sample_businesses
from api.websocket.manager import ConnectionRegistry
from core.constants import get_settings
from core.intelligence import IntelligenceGateway
from integrations.llm_providers import create_provider
from utils.db_utils import check_pool_health, close_pool, create_database_pool
from utils.logger import configure_uvicorn_logging, logger

# Settings are loaded via Pydantic Settings with environment-specific file support
# (.env, .env.{APP_ENV}, .env.local)
settings = get_settings()

if settings.debug:
    from core.constants import _get_env_files

    logger.info(f"Env files: {[f.name for f in _get_env_files()]}")
    logger.info(
        f"Settings: app_env={settings.app_env}, provider={settings.api_provider}, "
        f"record_store={settings.record_store}"
    )

# Configure uvicorn logging at module level to ensure workers use it
configure_uvicorn_logging()


async def _create_store(app: FastAPI) -> RecordStore:
    """Build the configured record store; seed demo data into a fresh memory store."""
    app.state.db_pool = None
    if settings.record_store == "postgres":
        app.state.db_pool = await create_database_pool(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
        health = await check_pool_health(app.state.db_pool)
        if not health["healthy"]:
            logger.error("Database health check failed during startup")
            raise RuntimeError("Database connection failed")
        logger.info(f"Database pool healthy: {health}")
        return PostgresRecordStore(app.state.db_pool)

    store = InMemoryRecordStore()
    if settings.seed_sample_businesses:
        await seed_sample_businesses(store)
    logger.info("Using in-memory record store")
    return store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown with graceful handling."""
    app.state.startup_time = datetime.now(UTC)

    provider = create_provider(settings)
    app.state.gateway = IntelligenceGateway(provider, timeout=settings.llm_timeout)
    logger.info(f"Intelligence gateway using provider '{provider.name}' (timeout: {settings.llm_timeout}s)")

    app.state.store = await _create_store(app)

    app.state.registry = ConnectionRegistry(
        idle_timeout_seconds=settings.ws_idle_timeout,
        lock_stripes=settings.ws_lock_stripes,
    )
    await app.state.registry.start_idle_checker()

    try:
        yield
    finally:
        logger.info("Initiating graceful shutdown sequence")

        # Phase 1: Stop accepting registrations, notify and close live channels
        await app.state.registry.graceful_shutdown(timeout=settings.shutdown_connection_drain_timeout)

        # Phase 2: Close the database pool
        if app.state.db_pool is not None:
            await close_pool(app.state.db_pool, timeout=settings.shutdown_connection_drain_timeout)


app = FastAPI(
    title="Prizm Connect API",
    description="""
## Prizm Connect API

Messaging between consumers and local businesses, with an AI assistant and
model-ranked business search.

### Features
- **Direct Messages**: Persisted first, pushed live over `/ws` when the recipient is online
- **Assistant**: Conversational replies that degrade to a fixed apology
- **Business Search**: Intent-based ranking that degrades to unranked results

### Authentication
Identity is established upstream; the socket binds to a user with an
`{"type": "auth", "userId": n}` frame.

### Versioning
API uses URL path versioning: `/api/v1/...`
""",
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints for monitoring and orchestration"},
        {"name": "Users", "description": "User registration"},
        {"name": "Businesses", "description": "Business profiles and search"},
        {"name": "Messages", "description": "Direct messages and conversations"},
        {"name": "Assistant", "description": "AI assistant conversation"},
        {"name": "WebSocket", "description": "Live message delivery"},
    ],
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
)

# Register global exception handlers for consistent error responses
register_exception_handlers(app)

# Request context middleware (adds request ID tracking)
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes - API v1
app.include_router(v1_router, prefix="/api/v1")

# WebSocket route (not versioned - protocol-level)
app.include_router(socket.router, tags=["WebSocket"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=not settings.is_production,
        reload_dirs=["src"],
        log_config=None,
    )
