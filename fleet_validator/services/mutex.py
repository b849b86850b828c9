"""FIFO mutual exclusion for coroutines.

Waiters are granted the lock strictly in the order they asked for it
(``asyncio.Lock`` keeps its waiters in a deque and never lets a newcomer
jump the queue). The lock is not reentrant: acquiring it again from inside
the critical section deadlocks. There is no timeout, so a critical section
that never finishes starves every waiter behind it.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class Mutex:
    """At most one critical section running at a time."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    async def with_lock(self, critical_section: Callable[[], Awaitable[T]]) -> T:
        """Run ``critical_section`` while holding the lock.

        The lock is released exactly once when the critical section settles,
        whether it returns or raises. Its exception propagates to this caller
        only.

        Args:
            critical_section: Zero-argument coroutine function

        Returns:
            Whatever the critical section returns
        """
        async with self._lock:
            return await critical_section()
