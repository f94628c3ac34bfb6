from __future__ import annotations
"""Credit ledger backed by the ``users.credits`` column.

Decrement is a single conditional UPDATE, so concurrent requests from the
same user can never drive the balance negative.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pixelstudio.errors import InsufficientCredits, PersistenceError
from pixelstudio.models import User

logger = logging.getLogger(__name__)


class CreditLedger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def check_and_decrement(self, user_id: str, cost: int) -> None:
        """Charge ``cost`` credits or raise InsufficientCredits."""
        if cost <= 0:
            return
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(User)
                    .where(User.id == user_id, User.credits >= cost)
                    .values(credits=User.credits - cost)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Credit decrement failed for user %s: %s", user_id, e)
            raise PersistenceError("Failed to update credits") from e

        if result.rowcount == 0:
            logger.info("User %s lacks %d credits", user_id, cost)
            raise InsufficientCredits(
                f"Insufficient credits: this generation costs {cost} credits"
            )
        logger.info("Charged user %s %d credits", user_id, cost)

    async def refund(self, user_id: str, amount: int) -> None:
        if amount <= 0:
            return
        try:
            async with self._session_factory() as session:
                await session.execute(
                    update(User)
                    .where(User.id == user_id)
                    .values(credits=User.credits + amount)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Credit refund of %d failed for user %s: %s", amount, user_id, e)
            raise PersistenceError("Failed to refund credits") from e
        logger.info("Refunded user %s %d credits", user_id, amount)

    async def balance(self, user_id: str) -> int:
        async with self._session_factory() as session:
            credits = await session.scalar(select(User.credits).where(User.id == user_id))
        return credits or 0
