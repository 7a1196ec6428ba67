"""Single-use verification tokens for email confirmation and password reset.

Pipeline:
- issue: random alphanumeric secret, stored with kind and expiry
- lookup: exact (kind, secret) match; expired rows are removed on sight
- consume: delete the row, reporting whether this caller removed it

Expiry policy: confirm tokens live 24 hours, reset tokens 1 hour (both
configurable). Consumption commits immediately so the token is spent before
the caller acts on it.
"""

import secrets
import string
from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from baseapp.core.config import settings
from baseapp.models.verification_token import TOKEN_KINDS, VerificationToken
from baseapp.repositories.verification_token_repository import (
    VerificationTokenRepository,
)

logger = structlog.get_logger()

ALPHABET = string.ascii_uppercase + string.digits + string.ascii_lowercase


def generate_secret(length: int | None = None) -> str:
    """Generate a URL-safe random secret.

    Args:
        length: Number of characters. Defaults to settings.token_length
            (22 characters, over 128 bits of entropy).

    Returns:
        String drawn uniformly from A-Z, 0-9 and a-z.
    """
    n = length if length is not None else settings.token_length
    return "".join(secrets.choice(ALPHABET) for _ in range(n))


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class TokenService:
    """Issues, looks up and consumes verification tokens."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        ttls: dict[str, timedelta] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            db: Async database session (the persistence collaborator).
            ttls: Lifetime per token kind, merged over the configured
                confirm/reset lifetimes.
        """
        self.db = db
        self.ttls = {
            "confirm": settings.confirm_token_ttl,
            "reset": settings.reset_token_ttl,
            **(ttls or {}),
        }

    async def issue(self, email: str, kind: str) -> str:
        """Create and store a token for email.

        Args:
            email: Subject account's email address.
            kind: ``"confirm"`` or ``"reset"``.

        Returns:
            The plain secret. Nothing else ever sees it; it goes into the
            emailed link.

        Raises:
            ValueError: If kind is not a known token kind.
        """
        if kind not in TOKEN_KINDS:
            msg = f"Unknown token kind: {kind}"
            raise ValueError(msg)

        secret = generate_secret()
        await VerificationTokenRepository.create(
            self.db,
            email=email,
            kind=kind,
            secret=secret,
            expires=datetime.now(UTC) + self.ttls[kind],
        )
        await self.db.commit()
        logger.info("Verification token issued", kind=kind)
        return secret

    async def lookup(self, kind: str, secret: str) -> VerificationToken | None:
        """Find an unexpired token by kind and secret.

        Not found covers never issued, already consumed, expired and guessed.
        Expired tokens are deleted as they are found.

        Args:
            kind: Expected token kind.
            secret: Secret taken from the link.

        Returns:
            VerificationToken if usable, None otherwise.
        """
        if not secret:
            return None

        token = await VerificationTokenRepository.get(self.db, kind=kind, secret=secret)
        if token is None:
            return None

        if _as_utc(token.expires) <= datetime.now(UTC):
            await VerificationTokenRepository.delete(self.db, secret=token.secret)
            await self.db.commit()
            logger.info("Expired verification token discarded", kind=kind)
            return None

        return token

    async def consume(self, token: VerificationToken) -> bool:
        """Spend a token.

        Args:
            token: Token returned by lookup().

        Returns:
            True if this call deleted the row; False if another request
            consumed it first.
        """
        kind, secret = token.kind, token.secret
        deleted = await VerificationTokenRepository.delete(self.db, secret=secret)
        await self.db.commit()
        if not deleted:
            logger.warning("Verification token already consumed", kind=kind)
        return deleted

    async def purge_expired(self) -> int:
        """Delete every expired token.

        Returns:
            Number of tokens removed.
        """
        removed = await VerificationTokenRepository.delete_expired(self.db)
        await self.db.commit()
        logger.info("Expired verification tokens purged", count=removed)
        return removed
