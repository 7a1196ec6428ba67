"""Repository for Profile operations."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from baseapp.models.account import Profile


class ProfileRepository:
    """Stateless repository for Profile table operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        account_id: uuid.UUID,
        name: str,
        photo_url: str | None = None,
    ) -> Profile:
        """Create the display profile for an account.

        Raises:
            sqlalchemy.exc.IntegrityError: If the account already has one.
        """
        profile = Profile(account_id=account_id, name=name, photo_url=photo_url)
        db.add(profile)
        await db.flush()
        return profile

    @staticmethod
    async def get_by_account_id(
        db: AsyncSession, account_id: uuid.UUID
    ) -> Profile | None:
        stmt = select(Profile).where(Profile.account_id == account_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
