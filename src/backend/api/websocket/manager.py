from __future__ import annotations

import asyncio
import contextlib
import time

from typing import Any

from api.websocket.channel import LiveChannel
from api.websocket.errors import WSCloseCode
from core.constants import FRAME_SERVER_SHUTDOWN
from utils.logger import logger


class ConnectionRegistry:
    """Map user ids to their live channel.

    One channel per user; the latest registration wins. Operations on a
    user's entry are serialized by one of a fixed set of striped locks, so
    traffic for unrelated users rarely contends.
    """

    def __init__(self, idle_timeout_seconds: float = 600.0, lock_stripes: int = 64) -> None:
        """Initialize the registry.

        Args:
            idle_timeout_seconds: Close channels idle longer than this (default 10 min)
            lock_stripes: Number of lock partitions user ids are hashed onto
        """
        self._channels: dict[int, LiveChannel] = {}
        self._stripes = [asyncio.Lock() for _ in range(max(1, lock_stripes))]
        self.idle_timeout = idle_timeout_seconds
        self._idle_checker_task: asyncio.Task[None] | None = None
        self._shutting_down = False

    def _lock_for(self, user_id: int) -> asyncio.Lock:
        return self._stripes[hash(user_id) % len(self._stripes)]

    async def register(self, user_id: int, channel: LiveChannel) -> bool:
        """Make ``channel`` the live channel for ``user_id``.

        A previously registered channel for the same user is closed with
        4409 after the swap.

        Returns:
            False if the registry is shutting down
        """
        async with self._lock_for(user_id):
            if self._shutting_down:
                logger.warning(f"Rejecting registration during shutdown for user {user_id}")
                return False
            previous = self._channels.get(user_id)
            channel.user_id = user_id
            channel.touch()
            self._channels[user_id] = channel

        if previous is not None and previous is not channel:
            logger.info(
                f"Channel {previous.channel_id} superseded by {channel.channel_id} for user {user_id}",
                user_id=user_id,
            )
            await previous.close(code=WSCloseCode.SUPERSEDED, reason="Superseded by a newer connection")
        else:
            logger.info(f"Channel {channel.channel_id} registered for user {user_id} (total: {self.connection_count})")
        return True

    async def unregister(self, user_id: int, channel: LiveChannel) -> bool:
        """Remove the entry only if ``channel`` is still the registered one."""
        async with self._lock_for(user_id):
            if self._channels.get(user_id) is not channel:
                logger.debug(f"Ignoring stale unregister of channel {channel.channel_id} for user {user_id}")
                return False
            del self._channels[user_id]
        logger.info(f"Channel {channel.channel_id} unregistered for user {user_id} (total: {self.connection_count})")
        return True

    async def deliver(self, user_id: int, payload: dict[str, Any]) -> bool:
        """Offer ``payload`` to the user's live channel without waiting on the socket.

        Returns:
            True only if a channel accepted the payload
        """
        async with self._lock_for(user_id):
            channel = self._channels.get(user_id)
            accepted = channel.offer(payload) if channel is not None else False

        if accepted:
            logger.debug(f"Delivered push to user {user_id}", user_id=user_id)
        else:
            logger.info(f"Delivery miss for user {user_id}; message stays in storage", user_id=user_id)
        return accepted

    def get_channel(self, user_id: int) -> LiveChannel | None:
        return self._channels.get(user_id)

    async def start_idle_checker(self) -> None:
        """Start background task to close idle channels."""
        if self._idle_checker_task is None:
            self._idle_checker_task = asyncio.create_task(self._check_idle_channels())
            logger.info(f"WebSocket idle checker started (timeout: {self.idle_timeout}s)")

    async def stop_idle_checker(self) -> None:
        """Stop the idle checker background task."""
        if self._idle_checker_task:
            self._idle_checker_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._idle_checker_task
            self._idle_checker_task = None
            logger.info("WebSocket idle checker stopped")

    async def _check_idle_channels(self) -> None:
        check_interval = min(60.0, self.idle_timeout / 2)
        while True:
            await asyncio.sleep(check_interval)
            await self.close_idle_channels()

    async def close_idle_channels(self) -> int:
        """Close and unregister channels idle longer than the timeout."""
        now = time.monotonic()
        to_close = [
            (user_id, channel)
            for user_id, channel in list(self._channels.items())
            if now - channel.last_activity > self.idle_timeout
        ]

        for user_id, channel in to_close:
            logger.info(f"Closing idle channel for user {user_id}", user_id=user_id)
            if await self.unregister(user_id, channel):
                await channel.close(code=WSCloseCode.IDLE_TIMEOUT, reason="Idle timeout")
        return len(to_close)

    async def graceful_shutdown(self, timeout: float = 10.0) -> None:
        """Notify every live channel, then close them all with 1001.

        Args:
            timeout: Maximum time to wait for channels to drain and close
        """
        self._shutting_down = True
        logger.info(f"Initiating graceful WebSocket shutdown (timeout: {timeout}s)")

        await self.stop_idle_checker()

        all_channels: list[tuple[int, LiveChannel]] = []
        for lock in self._stripes:
            await lock.acquire()
        try:
            all_channels = list(self._channels.items())
            self._channels.clear()
        finally:
            for lock in self._stripes:
                lock.release()

        for _, channel in all_channels:
            channel.offer({"type": FRAME_SERVER_SHUTDOWN, "message": "Server is shutting down"})

        if all_channels:
            per_channel = max(timeout / 2, 0.1)
            close_tasks = [
                channel.close(code=WSCloseCode.GOING_AWAY, reason="Server shutdown", drain_timeout=per_channel)
                for _, channel in all_channels
            ]
            try:
                await asyncio.wait_for(asyncio.gather(*close_tasks), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Timeout closing {len(all_channels)} WebSocket connections")

        logger.info(f"WebSocket shutdown complete (closed {len(all_channels)} connections)")

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def connection_count(self) -> int:
        """Number of registered channels."""
        return len(self._channels)

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "total_connections": self.connection_count,
            "lock_stripes": len(self._stripes),
            "idle_timeout": self.idle_timeout,
            "shutting_down": self._shutting_down,
        }
