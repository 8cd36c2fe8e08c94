"""
Live channel: one accepted WebSocket plus its outbound queue.

Pushes never await socket I/O. :meth:`LiveChannel.offer` enqueues without
blocking and a writer task drains the queue onto the socket in order.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import time

from typing import Any

from fastapi import WebSocket

from utils.logger import logger

_channel_ids = itertools.count(1)


class LiveChannel:
    """An authenticated (or authenticating) socket owned by the registry."""

    def __init__(self, websocket: WebSocket, queue_size: int = 256):
        self.websocket = websocket
        self.channel_id = next(_channel_ids)
        self.user_id: int | None = None
        self.last_activity = time.monotonic()
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=queue_size)
        self._writer_task: asyncio.Task[None] | None = None
        self._closed = False
        self._socket_closed = False

    def __repr__(self) -> str:
        return f"LiveChannel(id={self.channel_id}, user_id={self.user_id}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Start the writer task. Idempotent."""
        if self._writer_task is None and not self._closed:
            self._writer_task = asyncio.create_task(self._write_loop())

    def touch(self) -> None:
        self.last_activity = time.monotonic()

    def offer(self, payload: dict[str, Any]) -> bool:
        """Enqueue a frame for sending.

        Returns:
            True if the frame was accepted, False if the channel is closed
            or its queue is full
        """
        if self._closed:
            return False
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full on channel {self.channel_id}", user_id=self.user_id)
            return False
        return True

    async def flush(self, timeout: float | None = None) -> bool:
        """Wait until every accepted frame has been written or dropped.

        Returns:
            False if the timeout elapsed first
        """
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _write_loop(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                await self.websocket.send_json(payload)
            except Exception as e:
                logger.warning(
                    f"Send failed on channel {self.channel_id}: {type(e).__name__}: {e}",
                    user_id=self.user_id,
                )
                self._closed = True
                self._queue.task_done()
                self._discard_pending()
                return
            self._queue.task_done()

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._queue.task_done()

    async def close(self, code: int = 1000, reason: str = "", drain_timeout: float | None = None) -> None:
        """Stop accepting frames, optionally drain, then close the socket. Idempotent."""
        self._closed = True

        writer = self._writer_task
        if drain_timeout and writer is not None and not writer.done():
            await self.flush(timeout=drain_timeout)

        if writer is not None and not writer.done():
            writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await writer
        self._discard_pending()

        if self._socket_closed:
            return
        self._socket_closed = True

        # Socket may already be gone
        with contextlib.suppress(Exception):
            await self.websocket.close(code=code, reason=reason)
        logger.debug(f"Closed channel {self.channel_id} (code={code})", user_id=self.user_id)
