"""
Credit Ledger

Per-user scan allowance. A reservation is a single conditional UPDATE so two
concurrent admissions can never spend the same credit.
"""
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.credits.exceptions import InsufficientCreditsError
from app.features.credits.models.user_credit import UserCredit, CreditPlan
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)


class CreditLedger:
    def __init__(self, db: AsyncSession, default_credits: Optional[int] = None):
        self.db = db
        self.default_credits = (
            settings.DEFAULT_FREE_CREDITS if default_credits is None else default_credits
        )

    async def get_account(self, user_id: str) -> Optional[UserCredit]:
        result = await self.db.execute(
            select(UserCredit)
            .where(UserCredit.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def ensure_account(self, user_id: str) -> UserCredit:
        """
        Return the user's credit account, provisioning a free-tier one on first contact.

        Commits on creation. A concurrent insert for the same user is tolerated.
        """
        account = await self.get_account(user_id)
        if account:
            return account

        self.db.add(UserCredit(user_id=user_id, balance=self.default_credits, plan=CreditPlan.free))
        try:
            await self.db.commit()
            logger.info(f"Provisioned {self.default_credits} free credits for user {user_id}")
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"Credit account for user {user_id} created concurrently")

        account = await self.get_account(user_id)
        if account is None:
            raise RuntimeError(f"Credit account for user {user_id} could not be provisioned")
        return account

    async def get_balance(self, user_id: str) -> int:
        account = await self.get_account(user_id)
        return account.balance if account else 0

    async def try_reserve(self, user_id: str) -> int:
        """
        Atomically take one credit from the user's balance and return what is left.

        Does not commit: the admission that owns the session commits the
        reservation together with the scan record.

        Raises:
            InsufficientCreditsError: balance is zero or the account does not exist
        """
        result = await self.db.execute(
            update(UserCredit)
            .where(UserCredit.user_id == user_id, UserCredit.balance > 0)
            .values(balance=UserCredit.balance - 1)
            .returning(UserCredit.balance)
            .execution_options(synchronize_session=False)
        )
        remaining = result.scalar_one_or_none()
        if remaining is None:
            logger.warning(f"Credit reservation refused for user {user_id}: no balance")
            raise InsufficientCreditsError(user_id)
        return remaining

    async def grant(self, user_id: str, amount: int) -> int:
        """Add credits to a user's balance and return the new balance."""
        if amount <= 0:
            raise ValueError("amount must be positive")

        await self.ensure_account(user_id)
        await self.db.execute(
            update(UserCredit)
            .where(UserCredit.user_id == user_id)
            .values(balance=UserCredit.balance + amount)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        balance = await self.db.scalar(
            select(UserCredit.balance).where(UserCredit.user_id == user_id)
        )
        logger.info(f"Granted {amount} credits to user {user_id}; balance is now {balance}")
        return balance
