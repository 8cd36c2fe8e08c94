from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from api.services.directory_service import DirectoryService
from api.services.message_router import MessageRouter
from api.services.record_store import RecordStore
from api.websocket.manager import ConnectionRegistry
from core.constants import Settings, get_settings
from core.intelligence import IntelligenceGateway


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    Settings are validated at startup and cached.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


def get_store(request: Request) -> RecordStore:
    """Get the record store from application state."""
    return request.app.state.store


def get_registry(request: Request) -> ConnectionRegistry:
    """Get the connection registry from application state."""
    return request.app.state.registry


def get_gateway(request: Request) -> IntelligenceGateway:
    """Get the intelligence gateway from application state."""
    return request.app.state.gateway


def get_message_router(
    store: Annotated[RecordStore, Depends(get_store)],
    registry: Annotated[ConnectionRegistry, Depends(get_registry)],
    gateway: Annotated[IntelligenceGateway, Depends(get_gateway)],
) -> MessageRouter:
    """Provide the message router over the shared store and registry."""
    return MessageRouter(store, registry, gateway)


def get_directory_service(
    store: Annotated[RecordStore, Depends(get_store)],
    gateway: Annotated[IntelligenceGateway, Depends(get_gateway)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> DirectoryService:
    """Provide the business directory."""
    return DirectoryService(store, gateway, candidate_limit=settings.search_candidate_limit)


# Type aliases for cleaner route signatures
Store = Annotated[RecordStore, Depends(get_store)]
Registry = Annotated[ConnectionRegistry, Depends(get_registry)]
Router = Annotated[MessageRouter, Depends(get_message_router)]
Directory = Annotated[DirectoryService, Depends(get_directory_service)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
