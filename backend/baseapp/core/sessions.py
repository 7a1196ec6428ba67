"""Per-caller session state.

A Session is a plain string-to-string mapping owned by one caller. It is
passed explicitly into every operation that reads or mutates it; there is no
process-wide session. The identity key is present only while logged in.

Two durability modes are chosen at login:
- ephemeral: expires after settings.session_ttl (default 1 hour)
- persistent ("remember me"): expires after settings.session_remember_ttl

The web layer stores the mapping client-side as a signed HS256 JWT
(encode / decode). A tampered or expired token decodes to an empty session.
"""

import logging
import secrets
from datetime import UTC, datetime, timedelta

import jwt

from baseapp.core.config import settings

logger = logging.getLogger(__name__)

IDENTITY_KEY = "email"
EXPIRES_KEY = "expires"
REMEMBER_KEY = "remember"
PASSWORD_RESET_KEY = "password_reset_until"

_AUDIENCE = "baseapp-session"
_ALGORITHM = "HS256"


class Session(dict[str, str]):
    """Key/value state for a single caller."""


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class SessionManager:
    """Represents and mutates the caller's authenticated-session state."""

    def __init__(
        self,
        *,
        ttl: timedelta | None = None,
        remember_ttl: timedelta | None = None,
        reset_window: timedelta | None = None,
        secret: str | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            ttl: Lifetime of an ephemeral session.
            remember_ttl: Lifetime of a remembered session.
            reset_window: How long a password-reset login may change the
                password without the current one.
            secret: HMAC key for encode/decode. Defaults to
                settings.session_secret; when that is empty a random
                per-process key is used, so sessions do not survive restarts.
        """
        self.ttl = ttl if ttl is not None else settings.session_ttl
        self.remember_ttl = (
            remember_ttl if remember_ttl is not None else settings.session_remember_ttl
        )
        self.reset_window = (
            reset_window
            if reset_window is not None
            else timedelta(minutes=settings.password_reset_window_minutes)
        )
        self._secret = secret or settings.session_secret.get_secret_value()
        if not self._secret:
            logger.warning("SESSION_SECRET not set, using a per-process key")
            self._secret = secrets.token_hex(32)

    def login(self, session: Session, identity: str, *, remember: bool = False) -> None:
        """Mark the session as authenticated for identity.

        Any state left over from a previous login is discarded first.
        """
        lifetime = self.remember_ttl if remember else self.ttl
        session.clear()
        session[IDENTITY_KEY] = identity
        session[EXPIRES_KEY] = (datetime.now(UTC) + lifetime).isoformat()
        session[REMEMBER_KEY] = "1" if remember else "0"

    def logout(self, session: Session) -> None:
        """Clear every key, not only the identity."""
        session.clear()

    def current_identity(self, session: Session) -> str | None:
        """Return the logged-in identity, or None.

        An expired session is cleared as a side effect.
        """
        identity = session.get(IDENTITY_KEY)
        if not identity:
            return None
        expires = _parse_timestamp(session.get(EXPIRES_KEY))
        if expires is None or expires <= datetime.now(UTC):
            session.clear()
            return None
        return identity

    def grant_password_reset(self, session: Session) -> None:
        """Allow one password change without the current password."""
        session[PASSWORD_RESET_KEY] = (
            datetime.now(UTC) + self.reset_window
        ).isoformat()

    def password_reset_allowed(self, session: Session) -> bool:
        until = _parse_timestamp(session.get(PASSWORD_RESET_KEY))
        return until is not None and until > datetime.now(UTC)

    def revoke_password_reset(self, session: Session) -> None:
        session.pop(PASSWORD_RESET_KEY, None)

    def encode(self, session: Session) -> str:
        """Serialize the session into a signed token.

        The token expires with the session; an anonymous session gets the
        ephemeral lifetime.
        """
        now = datetime.now(UTC)
        expires = _parse_timestamp(session.get(EXPIRES_KEY)) or now + self.ttl
        payload = {
            "sess": dict(session),
            "aud": _AUDIENCE,
            "iat": now,
            "exp": expires,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def decode(self, token: str | None) -> Session:
        """Restore a session from a signed token.

        Returns:
            The stored session, or an empty one when the token is missing,
            tampered with, expired or malformed.
        """
        if not token:
            return Session()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                audience=_AUDIENCE,
            )
        except jwt.InvalidTokenError:
            logger.debug("Rejected session token")
            return Session()

        data = payload.get("sess")
        if not isinstance(data, dict):
            return Session()
        return Session({str(k): str(v) for k, v in data.items()})
