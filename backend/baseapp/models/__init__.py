"""SQLAlchemy ORM models for baseapp.

All models are exported from this module for convenient imports:
    from baseapp.models import Account, Profile, VerificationToken

- account.py: Account, Profile
- verification_token.py: VerificationToken
"""

from baseapp.models.account import Account, Profile
from baseapp.models.base import Base, TimestampMixin
from baseapp.models.verification_token import TOKEN_KINDS, VerificationToken

__all__ = [
    "TOKEN_KINDS",
    "Account",
    "Base",
    "Profile",
    "TimestampMixin",
    "VerificationToken",
]
