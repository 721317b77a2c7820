"""At most one in-flight compilation per output path; waiters share its outcome."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")


class RequestSerializer:
    """Per-key "first caller compiles, the rest wait" coordinator.

    A key is present in the in-flight registry exactly while its factory is
    running. When the factory finishes, the key is removed and every queued
    waiter is released with the same result or the same exception.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, list[asyncio.Future[Any]]] = {}

    def is_compiling(self, key: str) -> bool:
        """Return True while a compilation for ``key`` is running."""
        return key in self._in_flight

    def waiting(self, key: str) -> int:
        """Number of callers queued behind the running compilation."""
        return len(self._in_flight.get(key, ()))

    def in_flight(self) -> tuple[str, ...]:
        """Keys currently compiling, in start order."""
        return tuple(self._in_flight.keys())

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory`` unless ``key`` is already compiling, then share the outcome."""
        waiters = self._in_flight.get(key)
        if waiters is not None:
            future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
            waiters.append(future)
            return await future

        self._in_flight[key] = []
        try:
            result = await factory()
        except asyncio.CancelledError:
            for waiter in self._release(key):
                waiter.cancel()
            raise
        except Exception as error:
            for waiter in self._release(key):
                waiter.set_exception(error)
            raise
        for waiter in self._release(key):
            waiter.set_result(result)
        return result

    def _release(self, key: str) -> list[asyncio.Future[Any]]:
        return [waiter for waiter in self._in_flight.pop(key, []) if not waiter.done()]
