"""Verification token model - email confirmation and password reset.

Single-use, time-limited. The secret is the primary key, so two active
tokens can never share one. Rows are deleted when consumed.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from baseapp.models.base import Base

TOKEN_KINDS: tuple[str, ...] = ("confirm", "reset")


class VerificationToken(Base):
    """Single-use token tying an email address to a pending action.

    Attributes:
        secret: Random alphanumeric secret embedded in the emailed link.
        email: Subject account's email address.
        kind: Token intent - ``"confirm"`` or ``"reset"``.
        expires: Token expiry timestamp.
        created_at: Issuance timestamp.
    """

    __tablename__ = "verification_tokens"
    __table_args__ = (
        CheckConstraint(
            "kind IN ('confirm', 'reset')", name="ck_verification_tokens_kind"
        ),
        Index("idx_verification_tokens_kind_secret", "kind", "secret"),
        Index("idx_verification_tokens_expires", "expires"),
    )

    secret: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    expires: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
