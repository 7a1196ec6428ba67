"""Account and Profile models.

An Account is the durable identity record, keyed by email. Its Profile holds
the display identity shown to other users; every Account has exactly one.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid, false, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from baseapp.models.base import Base, TimestampMixin


class Account(Base, TimestampMixin):
    """Identity record for password authentication.

    Attributes:
        id: UUID primary key.
        email: Unique email address, stored as submitted (case-sensitive).
        password_hash: bcrypt hash. Never the plaintext.
        confirmed: Whether the email address has been confirmed.
        created_at: Registration timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    confirmed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=false(),
        default=False,
    )

    profile: Mapped["Profile"] = relationship(
        "Profile",
        back_populates="account",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )


class Profile(Base):
    """Display identity linked one-to-one with an Account.

    Attributes:
        id: UUID primary key.
        account_id: Owning account (unique, cascades on delete).
        name: Display name given at registration.
        photo_url: Gravatar identicon URL derived from the email.
        created_at: Creation timestamp.
    """

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    photo_url: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    account: Mapped[Account] = relationship(
        "Account",
        back_populates="profile",
    )
