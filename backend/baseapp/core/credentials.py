"""Password hashing and verification.

bcrypt with a cost factor fixed by configuration. Verification goes through
bcrypt.checkpw, which compares in constant time.

- CredentialStore.hash: salted, expensive one-way hash for storage
- CredentialStore.verify: True iff the plaintext matches the stored hash
- CredentialStore.verify_dummy: same cost as verify, always False
"""

import contextlib
import logging

import bcrypt

from baseapp.core.config import settings

logger = logging.getLogger(__name__)

# Pre-computed bcrypt hash for timing-safe comparison on account-not-found.
# Security: prevents account enumeration via response time differences.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"


class CredentialStore:
    """Hashes and verifies account passwords."""

    def __init__(self, rounds: int | None = None) -> None:
        """Initialize the store.

        Args:
            rounds: bcrypt cost factor. Defaults to settings.bcrypt_rounds.
        """
        self.rounds = rounds if rounds is not None else settings.bcrypt_rounds

    def hash(self, plaintext: str) -> str:
        """Derive a salted bcrypt hash for storage.

        Args:
            plaintext: Password as submitted. Must be at most 72 bytes
                when UTF-8 encoded (enforced by validate_password).

        Returns:
            bcrypt hash string embedding its salt and cost.
        """
        return bcrypt.hashpw(
            plaintext.encode(), bcrypt.gensalt(rounds=self.rounds)
        ).decode()

    def verify(self, password_hash: str, plaintext: str) -> bool:
        """Check a plaintext password against a stored hash.

        Args:
            password_hash: Hash previously returned by hash().
            plaintext: Password to check.

        Returns:
            True if the password matches, False otherwise (including when
            the stored hash is malformed or the plaintext is over 72 bytes).
        """
        try:
            return bcrypt.checkpw(plaintext.encode(), password_hash.encode())
        except ValueError:
            # Malformed stored hash, or a plaintext over bcrypt's 72-byte limit
            logger.warning("Password comparison rejected its input")
            return False

    def verify_dummy(self, plaintext: str) -> bool:
        """Burn one bcrypt comparison for an account that does not exist."""
        with contextlib.suppress(ValueError):
            bcrypt.checkpw(plaintext.encode(), DUMMY_HASH)
        return False
