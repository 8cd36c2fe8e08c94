"""
Record store for users, businesses and messages.

Two backends implement :class:`RecordStore`: an in-process store used for
local development and tests, and a PostgreSQL store on an asyncpg pool.
Both raise :class:`StorageError` for any persistence failure.
"""

from __future__ import annotations

import asyncio
import itertools
import json

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Protocol

import asyncpg

from api.middleware.exception_handlers import StorageError
from core.constants import ASSISTANT_USER_ID
from models.error_models import ErrorCode
from models.records import Business, Message, User, UserKind
from utils.db_utils import ConnectionPoolExhausted, acquire_connection
from utils.logger import logger

#: Demo businesses seeded on startup (owner name, category, description, services).
SAMPLE_BUSINESSES: tuple[dict[str, Any], ...] = (
    {
        "name": "TechHub Solutions",
        "category": "Technology",
        "description": (
            "Expert IT consulting and software development services. "
            "Specializing in web applications, mobile apps, and cloud solutions."
        ),
        "services": ["Web Development", "Mobile Apps", "Cloud Computing", "IT Consulting"],
    },
    {
        "name": "HomeFix Pro",
        "category": "Home Services",
        "description": (
            "Professional home repair and maintenance services. "
            "From basic repairs to major renovations, we do it all."
        ),
        "services": ["Home Repairs", "Renovation", "Plumbing", "Electrical", "HVAC"],
    },
    {
        "name": "HealthPlus Services",
        "category": "Healthcare",
        "description": (
            "Comprehensive healthcare services including preventive care, "
            "wellness programs, and specialized treatments."
        ),
        "services": ["Primary Care", "Wellness Programs", "Specialized Care", "Telemedicine"],
    },
)

SAMPLE_LOCATION = "New York, NY"


class RecordStore(Protocol):
    """Persistence operations the router and directory rely on."""

    async def create_user(self, name: str, kind: UserKind) -> User: ...

    async def get_user(self, user_id: int) -> User | None: ...

    async def create_business(
        self,
        user_id: int,
        description: str,
        category: str,
        location: str,
        services: Sequence[str],
    ) -> Business: ...

    async def get_business(self, business_id: int) -> Business | None: ...

    async def create_message(self, from_id: int, to_id: int, content: str) -> Message: ...

    async def get_messages(self, a: int, b: int) -> list[Message]: ...

    async def search_businesses(self, query: str, limit: int) -> list[Business]: ...

    async def ping(self) -> bool: ...


class InMemoryRecordStore:
    """Process-local store.

    A single lock serializes writes so message ids strictly increase and
    timestamps never go backwards.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._user_ids = itertools.count(1)
        self._business_ids = itertools.count(1)
        self._message_ids = itertools.count(1)
        self._users: dict[int, User] = {}
        self._businesses: dict[int, Business] = {}
        self._messages: list[Message] = []
        self._last_timestamp: datetime | None = None

    def _now(self) -> datetime:
        now = datetime.now(UTC)
        if self._last_timestamp is not None and now < self._last_timestamp:
            now = self._last_timestamp
        self._last_timestamp = now
        return now

    async def create_user(self, name: str, kind: UserKind) -> User:
        async with self._lock:
            user = User(id=next(self._user_ids), name=name, kind=kind)
            self._users[user.id] = user
        return user

    async def get_user(self, user_id: int) -> User | None:
        return self._users.get(user_id)

    async def create_business(
        self,
        user_id: int,
        description: str,
        category: str,
        location: str,
        services: Sequence[str],
    ) -> Business:
        async with self._lock:
            business = Business(
                id=next(self._business_ids),
                user_id=user_id,
                description=description,
                category=category,
                location=location,
                services=list(services),
            )
            self._businesses[business.id] = business
        return business

    async def get_business(self, business_id: int) -> Business | None:
        return self._businesses.get(business_id)

    async def create_message(self, from_id: int, to_id: int, content: str) -> Message:
        async with self._lock:
            message = Message(
                id=next(self._message_ids),
                from_id=from_id,
                to_id=to_id,
                content=content,
                timestamp=self._now(),
                is_ai_assistant=from_id == ASSISTANT_USER_ID,
            )
            self._messages.append(message)
        return message

    async def get_messages(self, a: int, b: int) -> list[Message]:
        pair = {a, b}
        conversation = [m for m in self._messages if {m.from_id, m.to_id} == pair]
        return sorted(conversation, key=lambda m: m.sort_key)

    async def search_businesses(self, query: str, limit: int) -> list[Business]:
        return [self._businesses[key] for key in sorted(self._businesses)][:limit]

    async def ping(self) -> bool:
        return True


class PostgresRecordStore:
    """Store backed by the ``users``, ``businesses`` and ``messages`` tables."""

    def __init__(self, pool: asyncpg.Pool, acquire_timeout: float | None = 10.0):
        self.pool = pool
        self.acquire_timeout = acquire_timeout

    @asynccontextmanager
    async def _connection(self, operation: str) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection and convert driver failures into StorageError."""
        try:
            async with acquire_connection(self.pool, timeout=self.acquire_timeout) as conn:
                yield conn
        except ConnectionPoolExhausted as e:
            logger.error(f"Storage unavailable during {operation}: {e}")
            raise StorageError(
                f"Storage unavailable during {operation}",
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
                cause=e,
            ) from e
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Storage failure during {operation}: {type(e).__name__}: {e}")
            raise StorageError(f"Storage failure during {operation}", cause=e) from e

    @staticmethod
    def _row_to_user(row: asyncpg.Record) -> User:
        return User(id=row["id"], name=row["name"], kind=row["kind"])

    @staticmethod
    def _row_to_business(row: asyncpg.Record) -> Business:
        services = row["services"]
        if isinstance(services, str):
            services = json.loads(services)
        return Business(
            id=row["id"],
            user_id=row["user_id"],
            description=row["description"],
            category=row["category"],
            location=row["location"],
            services=services or [],
        )

    @staticmethod
    def _row_to_message(row: asyncpg.Record) -> Message:
        return Message(
            id=row["id"],
            from_id=row["from_id"],
            to_id=row["to_id"],
            content=row["content"],
            timestamp=row["timestamp"],
            is_ai_assistant=row["is_ai_assistant"],
        )

    async def create_user(self, name: str, kind: UserKind) -> User:
        async with self._connection("create_user") as conn:
            row = await conn.fetchrow(
                "INSERT INTO users (name, kind) VALUES ($1, $2) RETURNING id, name, kind",
                name,
                kind,
            )
        return self._row_to_user(row)

    async def get_user(self, user_id: int) -> User | None:
        async with self._connection("get_user") as conn:
            row = await conn.fetchrow("SELECT id, name, kind FROM users WHERE id = $1", user_id)
        return self._row_to_user(row) if row else None

    async def create_business(
        self,
        user_id: int,
        description: str,
        category: str,
        location: str,
        services: Sequence[str],
    ) -> Business:
        async with self._connection("create_business") as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO businesses (user_id, description, category, location, services)
                VALUES ($1, $2, $3, $4, $5::jsonb)
                RETURNING *
                """,
                user_id,
                description,
                category,
                location,
                json.dumps(list(services)),
            )
        return self._row_to_business(row)

    async def get_business(self, business_id: int) -> Business | None:
        async with self._connection("get_business") as conn:
            row = await conn.fetchrow("SELECT * FROM businesses WHERE id = $1", business_id)
        return self._row_to_business(row) if row else None

    async def create_message(self, from_id: int, to_id: int, content: str) -> Message:
        async with self._connection("create_message") as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO messages (from_id, to_id, content, is_ai_assistant)
                VALUES ($1, $2, $3, $4)
                RETURNING *
                """,
                from_id,
                to_id,
                content,
                from_id == ASSISTANT_USER_ID,
            )
        return self._row_to_message(row)

    async def get_messages(self, a: int, b: int) -> list[Message]:
        async with self._connection("get_messages") as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM messages
                WHERE (from_id = $1 AND to_id = $2) OR (from_id = $2 AND to_id = $1)
                ORDER BY timestamp ASC, id ASC
                """,
                a,
                b,
            )
        return [self._row_to_message(row) for row in rows]

    async def search_businesses(self, query: str, limit: int) -> list[Business]:
        async with self._connection("search_businesses") as conn:
            rows = await conn.fetch("SELECT * FROM businesses ORDER BY id ASC LIMIT $1", limit)
        return [self._row_to_business(row) for row in rows]

    async def ping(self) -> bool:
        async with self._connection("ping") as conn:
            return bool(await conn.fetchval("SELECT 1") == 1)


async def seed_sample_businesses(store: RecordStore) -> list[Business]:
    """Create the demo business owners and their profiles."""
    created: list[Business] = []
    for sample in SAMPLE_BUSINESSES:
        owner = await store.create_user(sample["name"], "business")
        business = await store.create_business(
            owner.id,
            description=sample["description"],
            category=sample["category"],
            location=SAMPLE_LOCATION,
            services=sample["services"],
        )
        created.append(business)
    logger.info(f"Seeded {len(created)} sample businesses")
    return created
