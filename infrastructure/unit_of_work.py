"""In-Memory Unit of Work

Serialises work per key (a property id while creating a booking, a booking id
while transitioning it) and undoes every repository write made inside a
failed block.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Callable, Dict, Hashable, List, Optional

from domain.repositories import UnitOfWork

logger = logging.getLogger(__name__)

_journal: ContextVar[Optional[List[Callable[[], None]]]] = ContextVar("uow_journal", default=None)


def record_undo(undo: Callable[[], None]) -> None:
    """Register how to revert a write; no-op outside a transaction"""
    journal = _journal.get()
    if journal is not None:
        journal.append(undo)


class InMemoryUnitOfWork(UnitOfWork):
    """asyncio.Lock per key plus an undo journal for rollback

    A key's lock lives only while some transaction holds or awaits it.
    """

    def __init__(self):
        # key -> [lock, holders and waiters]
        self._locks: Dict[Hashable, list] = {}

    def _claim(self, key: Hashable) -> asyncio.Lock:
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        return entry[0]

    def _unclaim(self, key: Hashable) -> None:
        entry = self._locks[key]
        entry[1] -= 1
        if entry[1] == 0:
            del self._locks[key]

    @asynccontextmanager
    async def transaction(self, *keys: Hashable):
        # Fixed acquisition order so two multi-key transactions cannot deadlock
        ordered = sorted(set(keys), key=str)
        locks = [self._claim(key) for key in ordered]
        acquired: List[asyncio.Lock] = []
        outer = _journal.get()
        journal: List[Callable[[], None]] = []
        token = _journal.set(journal)
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            logger.debug("Transaction begin on %s", ordered)
            yield
        except BaseException:
            for undo in reversed(journal):
                undo()
            logger.debug("Transaction rollback on %s (%d writes undone)", ordered, len(journal))
            raise
        else:
            if outer is not None:
                # Nested block: the enclosing transaction owns the writes
                outer.extend(journal)
            logger.debug("Transaction commit on %s (%d writes)", ordered, len(journal))
        finally:
            _journal.reset(token)
            for lock in reversed(acquired):
                lock.release()
            for key in ordered:
                self._unclaim(key)

    def is_locked(self, key: Hashable) -> bool:
        entry = self._locks.get(key)
        return entry is not None and entry[0].locked()

    def lock_count(self) -> int:
        """Keys currently held or awaited"""
        return len(self._locks)
