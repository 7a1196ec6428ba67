"""Repository for VerificationToken CRUD operations.

Single-use tokens looked up by (kind, secret) and time-limited by expiry.
delete() reports whether a row was actually removed so a second consumer
racing the first can tell it lost.
"""

from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from baseapp.models.verification_token import VerificationToken


class VerificationTokenRepository:
    """Stateless repository for VerificationToken table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        kind: str,
        secret: str,
        expires: datetime,
    ) -> VerificationToken:
        """Store a new verification token.

        Args:
            db: Async database session.
            email: Subject account's email address.
            kind: ``"confirm"`` or ``"reset"``.
            secret: Plain token secret.
            expires: Token expiry timestamp.

        Returns:
            Created VerificationToken.

        Raises:
            sqlalchemy.exc.IntegrityError: If the secret is already in use.
        """
        vt = VerificationToken(
            email=email,
            kind=kind,
            secret=secret,
            expires=expires,
        )
        db.add(vt)
        await db.flush()
        return vt

    @staticmethod
    async def get(
        db: AsyncSession,
        *,
        kind: str,
        secret: str,
    ) -> VerificationToken | None:
        """Look up a token by kind and secret.

        Args:
            db: Async database session.
            kind: Expected token kind.
            secret: Plain token secret.

        Returns:
            VerificationToken if found, None otherwise.
        """
        stmt = select(VerificationToken).where(
            VerificationToken.kind == kind,
            VerificationToken.secret == secret,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete(
        db: AsyncSession,
        *,
        secret: str,
    ) -> bool:
        """Delete a token (single-use consumption).

        Args:
            db: Async database session.
            secret: Plain token secret.

        Returns:
            True if a row was deleted, False if it was already gone.
        """
        stmt = delete(VerificationToken).where(VerificationToken.secret == secret)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0

    @staticmethod
    async def delete_expired(db: AsyncSession) -> int:
        """Delete all expired tokens (periodic cleanup).

        Args:
            db: Async database session.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(VerificationToken).where(
            VerificationToken.expires < datetime.now(UTC),
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
