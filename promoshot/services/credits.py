from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from promoshot.db.models import UserCredits
from promoshot.services.errors import InsufficientCredits, PersistenceError
from promoshot.utils.logging import get_logger


logger = get_logger('credits')


class CreditsService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_balance(self, user_id: uuid.UUID) -> Optional[int]:
        result = await self.session.execute(select(UserCredits.credits).where(UserCredits.user_id == user_id))
        value = result.scalar_one_or_none()
        return None if value is None else int(value)

    async def require_credit(self, user_id: uuid.UUID) -> int:
        try:
            balance = await self.get_balance(user_id)
        except SQLAlchemyError as exc:
            logger.error('credits_fetch_failed', user_id=str(user_id), error=str(exc))
            raise PersistenceError('Failed to fetch credits') from exc
        if balance is None:
            logger.error('credits_row_missing', user_id=str(user_id))
            raise PersistenceError('Failed to fetch credits')
        if balance < 1:
            raise InsufficientCredits()
        return balance

    async def debit(self, user_id: uuid.UUID, amount: int = 1) -> Optional[int]:
        """Decrement only while the balance covers ``amount``; ``None`` when it did not."""
        result = await self.session.execute(
            update(UserCredits)
            .where(UserCredits.user_id == user_id, UserCredits.credits >= amount)
            .values(credits=UserCredits.credits - amount)
            .returning(UserCredits.credits)
        )
        value = result.scalar_one_or_none()
        return None if value is None else int(value)

    async def refund(self, user_id: uuid.UUID, amount: int = 1) -> Optional[int]:
        result = await self.session.execute(
            update(UserCredits)
            .where(UserCredits.user_id == user_id)
            .values(credits=UserCredits.credits + amount)
            .returning(UserCredits.credits)
        )
        value = result.scalar_one_or_none()
        return None if value is None else int(value)
