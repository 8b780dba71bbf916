"""
User Repository
===============

Non-blocking lookup of users by id. The service only depends on the
``UserRepository`` interface; ``InMemoryUserRepository`` backs it with a
dict guarded by an asyncio lock.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from spanwise.users.models import User

logger = logging.getLogger("spanwise.users.repository")


class UserRepository(ABC):
    """Async CRUD-style access to users."""

    @abstractmethod
    async def find_by_id(self, user_id: int) -> Optional[User]:
        """Return the user with ``user_id``, or None if absent."""

    @abstractmethod
    async def save(self, user: User) -> User:
        """Insert or replace a user."""

    @abstractmethod
    async def find_all(self) -> List[User]:
        """Return every stored user ordered by id."""


class InMemoryUserRepository(UserRepository):
    """Dict-backed repository, seeded at construction."""

    def __init__(self, users: Iterable[User] = ()):
        self._users: Dict[int, User] = {u.id: u for u in users}
        self._lock = asyncio.Lock()

    async def find_by_id(self, user_id: int) -> Optional[User]:
        async with self._lock:
            user = self._users.get(user_id)
        logger.debug(f"find_by_id({user_id}) -> {'hit' if user else 'miss'}")
        return user

    async def save(self, user: User) -> User:
        async with self._lock:
            self._users[user.id] = user
        return user

    async def find_all(self) -> List[User]:
        async with self._lock:
            return [self._users[k] for k in sorted(self._users)]
