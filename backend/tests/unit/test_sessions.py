"""Tests for SessionManager session state and signed encoding."""

from datetime import UTC, datetime, timedelta

import jwt
from pydantic import SecretStr

from baseapp.core.config import settings
from baseapp.core.sessions import (
    EXPIRES_KEY,
    IDENTITY_KEY,
    PASSWORD_RESET_KEY,
    REMEMBER_KEY,
    Session,
    SessionManager,
)

_SECRET = "test-session-secret-that-is-at-least-32-chars"  # nosec B105  # gitleaks:allow
_EMAIL = "alice@example.com"


def _manager(**kwargs) -> SessionManager:
    return SessionManager(secret=_SECRET, **kwargs)


class TestLogin:
    """Tests for SessionManager.login()."""

    def test_sets_identity(self):
        session = Session()
        _manager().login(session, _EMAIL)
        assert session[IDENTITY_KEY] == _EMAIL
        assert _manager().current_identity(session) == _EMAIL

    def test_ephemeral_by_default(self):
        session = Session()
        _manager(ttl=timedelta(minutes=5)).login(session, _EMAIL)
        expires = datetime.fromisoformat(session[EXPIRES_KEY])
        assert session[REMEMBER_KEY] == "0"
        assert expires <= datetime.now(UTC) + timedelta(minutes=5)

    def test_remember_uses_long_lifetime(self):
        session = Session()
        _manager(remember_ttl=timedelta(days=30)).login(session, _EMAIL, remember=True)
        expires = datetime.fromisoformat(session[EXPIRES_KEY])
        assert session[REMEMBER_KEY] == "1"
        assert expires > datetime.now(UTC) + timedelta(days=29)

    def test_discards_previous_state(self):
        session = Session({"stale": "value", PASSWORD_RESET_KEY: "x"})
        _manager().login(session, _EMAIL)
        assert "stale" not in session
        assert PASSWORD_RESET_KEY not in session


class TestLogout:
    """Tests for SessionManager.logout()."""

    def test_clears_every_key(self):
        manager = _manager()
        session = Session()
        manager.login(session, _EMAIL)
        session["extra"] = "1"
        manager.logout(session)
        assert session == {}
        assert manager.current_identity(session) is None

    def test_logout_when_logged_out(self):
        session = Session()
        _manager().logout(session)
        assert session == {}


class TestCurrentIdentity:
    """Tests for SessionManager.current_identity()."""

    def test_none_when_empty(self):
        assert _manager().current_identity(Session()) is None

    def test_expired_session_is_cleared(self):
        session = Session(
            {
                IDENTITY_KEY: _EMAIL,
                EXPIRES_KEY: (datetime.now(UTC) - timedelta(seconds=1)).isoformat(),
            }
        )
        assert _manager().current_identity(session) is None
        assert session == {}

    def test_missing_expiry_is_treated_as_expired(self):
        session = Session({IDENTITY_KEY: _EMAIL})
        assert _manager().current_identity(session) is None

    def test_zero_lifetime_is_honoured(self):
        """An explicit zero ttl is not replaced by the default."""
        manager = _manager(ttl=timedelta(0))
        session = Session()
        manager.login(session, _EMAIL)
        assert manager.current_identity(session) is None


class TestPasswordResetMarker:
    """Tests for the password-reset grant."""

    def test_grant_and_revoke(self):
        manager = _manager()
        session = Session()
        manager.login(session, _EMAIL)
        assert manager.password_reset_allowed(session) is False

        manager.grant_password_reset(session)
        assert manager.password_reset_allowed(session) is True

        manager.revoke_password_reset(session)
        assert manager.password_reset_allowed(session) is False

    def test_marker_expires(self):
        session = Session(
            {PASSWORD_RESET_KEY: (datetime.now(UTC) - timedelta(seconds=1)).isoformat()}
        )
        assert _manager().password_reset_allowed(session) is False

    def test_zero_reset_window_grants_nothing(self):
        manager = _manager(reset_window=timedelta(0))
        session = Session()
        manager.grant_password_reset(session)
        assert manager.password_reset_allowed(session) is False


class TestEncodeDecode:
    """Tests for signed session tokens."""

    def test_decodes_what_it_encodes(self):
        manager = _manager()
        session = Session()
        manager.login(session, _EMAIL, remember=True)
        restored = manager.decode(manager.encode(session))
        assert restored == session
        assert isinstance(restored, Session)

    def test_tampered_token_gives_empty_session(self):
        manager = _manager()
        session = Session()
        manager.login(session, _EMAIL)
        token = manager.encode(session)
        forged = jwt.encode(
            {"sess": {IDENTITY_KEY: "mallory@example.com"}, "aud": "baseapp-session"},
            "some-other-secret-that-is-32-chars-long",
            algorithm="HS256",
        )
        assert manager.decode(forged) == {}
        assert manager.decode(token[:-2] + "xx") == {}

    def test_missing_token_gives_empty_session(self):
        assert _manager().decode(None) == {}
        assert _manager().decode("") == {}

    def test_other_key_cannot_decode(self):
        session = Session()
        _manager().login(session, _EMAIL)
        token = _manager().encode(session)
        other = SessionManager(secret="a-different-secret-also-32-chars-long!")
        assert other.decode(token) == {}

    def test_missing_secret_falls_back_to_process_key(self, monkeypatch):
        """Without a configured secret, a manager still reads its own tokens."""
        monkeypatch.setattr(settings, "session_secret", SecretStr(""))
        manager = SessionManager()
        session = Session()
        manager.login(session, _EMAIL)
        assert manager.decode(manager.encode(session)) == session
