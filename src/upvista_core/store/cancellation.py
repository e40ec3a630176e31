"""Cancellation signal shared by the store calls of one request."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """One-shot signal that aborts every pending store call watching it."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
