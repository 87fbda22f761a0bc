"""Per-key asyncio locks.

One lock per key, created on first use and dropped once nobody holds or
waits for it. Re-entrant for the task that already holds the key: a
nested call from inside a transfer proceeds instead of deadlocking, and
then sees whatever the outer call already committed.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class _KeyState:
    __slots__ = ("depth", "lock", "owner", "waiters")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.owner: asyncio.Task[object] | None = None
        self.depth = 0
        self.waiters = 0


class KeyedLock:
    """Mutual exclusion per key within one event loop."""

    def __init__(self) -> None:
        self._keys: dict[Hashable, _KeyState] = {}

    def locked(self, key: Hashable) -> bool:
        state = self._keys.get(key)
        return state is not None and state.lock.locked()

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        task = asyncio.current_task()
        state = self._keys.get(key)
        if state is None:
            state = self._keys[key] = _KeyState()

        if state.owner is not None and state.owner is task:
            state.depth += 1
            try:
                yield
            finally:
                state.depth -= 1
            return

        state.waiters += 1
        try:
            await state.lock.acquire()
        except BaseException:
            state.waiters -= 1
            self._discard_if_idle(key, state)
            raise
        state.waiters -= 1
        state.owner = task
        state.depth = 1
        try:
            yield
        finally:
            state.depth = 0
            state.owner = None
            state.lock.release()
            self._discard_if_idle(key, state)

    def _discard_if_idle(self, key: Hashable, state: _KeyState) -> None:
        if state.waiters == 0 and not state.lock.locked():
            if self._keys.get(key) is state:
                del self._keys[key]
