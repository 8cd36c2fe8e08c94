from __future__ import annotations

from collections.abc import Sequence

from api.middleware.exception_handlers import ResourceNotFoundError, ValidationError
from api.services.record_store import RecordStore
from core.intelligence import IntelligenceGateway
from models.records import Business, User, UserKind
from utils.logger import logger


class DirectoryService:
    """User and business directory with model-ranked search."""

    def __init__(self, store: RecordStore, gateway: IntelligenceGateway, candidate_limit: int = 50):
        self.store = store
        self.gateway = gateway
        self.candidate_limit = candidate_limit

    async def register_user(self, name: str, kind: UserKind) -> User:
        """Create a user; ids start at 1 and never collide with the assistant."""
        if not name.strip():
            raise ValidationError("Name cannot be empty", field="name")
        user = await self.store.create_user(name.strip(), kind)
        logger.info(f"Registered {kind} user {user.id}", user_id=user.id)
        return user

    async def register_business(
        self,
        user_id: int,
        description: str,
        category: str,
        location: str,
        services: Sequence[str],
    ) -> Business:
        """Attach a business profile to an existing business-kind user."""
        owner = await self.store.get_user(user_id)
        if owner is None:
            raise ResourceNotFoundError("User", user_id)
        if owner.kind != "business":
            raise ValidationError("Only business accounts can own a business profile", field="userId")

        business = await self.store.create_business(
            user_id,
            description=description,
            category=category,
            location=location,
            services=[service.strip() for service in services if service.strip()],
        )
        logger.info(f"Registered business {business.id} for user {user_id}", user_id=user_id)
        return business

    async def search_businesses(self, query: str) -> list[Business]:
        """Rank businesses for a free-text need. A blank query matches nothing."""
        query = query.strip()
        if not query:
            return []

        candidates = await self.store.search_businesses(query, self.candidate_limit)
        return await self.gateway.match_businesses(query, candidates)
