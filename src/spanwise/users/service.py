"""
User Service
============

Looks a user up and answers with a fixed user name after an artificial
random delay. The lookup exists only to compose non-blocking I/O inside an
observed operation.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional

from spanwise.observation import KeyValues, ObservationRegistry, observed
from spanwise.users.repository import UserRepository

logger = logging.getLogger("spanwise.users.service")


class UserService:
    """
    Observed user-name lookups.

    ``user_name`` is reported as ``user.name`` (metric name) with the span
    name ``getting-user-name`` and the tag ``userType=userType2``.
    """

    def __init__(
        self,
        user_repository: UserRepository,
        observation_registry: ObservationRegistry,
        max_delay_ms: int = 200,
        user_name: str = "foo",
        rng: Optional[random.Random] = None,
    ):
        self.user_repository = user_repository
        self.observation_registry = observation_registry
        self.max_delay_ms = max_delay_ms
        self.fixed_user_name = user_name
        self.random = rng or random.Random()

    @observed(
        name="user.name",
        contextual_name="getting-user-name",
        low_cardinality=KeyValues.of("userType", "userType2"),
    )
    async def user_name(self, user_id: str) -> str:
        """
        Raises:
            ValueError: If ``user_id`` is not an integer
        """
        logger.info("Getting user name for user with id <%s>", user_id)
        await self.user_repository.find_by_id(int(user_id))
        await asyncio.sleep(self.random.randrange(self.max_delay_ms) / 1000)
        return self.fixed_user_name
