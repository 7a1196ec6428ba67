"""Account workflow — registration, sign-in and email verification flows.

Orchestrates the credential store, token service and session manager over an
explicit database session and mail collaborator. Every public coroutine
returns an Outcome for the web layer to render; expected negative results
(bad credentials, used tokens, taken emails, malformed input) never raise.
Only collaborator failures surface as exceptions:

- PersistenceError: any database error other than the email uniqueness
  violation, which is reported exactly like the pre-insert "taken" check
- MailDeliveryError: only from request_recovery; registration and
  resend_confirmation log and absorb it

Account states: Unregistered -> PendingConfirmation (register)
-> Confirmed (confirm_email). Session states: LoggedOut <-> LoggedIn.

Anti-enumeration: login and request_recovery answer identically whether or
not an account exists for the submitted email.
"""

import hashlib
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from baseapp.core.config import settings
from baseapp.core.credentials import CredentialStore
from baseapp.core.email import Mailer, verification_link
from baseapp.core.errors import MailDeliveryError, PersistenceError
from baseapp.core.sessions import Session, SessionManager
from baseapp.core.validation import (
    Validation,
    validate_email,
    validate_name,
    validate_password,
)
from baseapp.models.account import Account
from baseapp.repositories.account_repository import AccountRepository
from baseapp.repositories.profile_repository import ProfileRepository
from baseapp.services.token_service import TokenService

logger = structlog.get_logger()

_REGISTRATION_FAILED_MSG = "Registration failed."
_SIGN_IN_FAILED_MSG = "Sign In failed."
_RECOVERY_FAILED_MSG = "Account recovery failed."
_PASSWORD_CHANGE_FAILED_MSG = "Password change failed."  # nosec B105
_TOKEN_INVALID_MSG = "Token invalid or used"  # nosec B105
_LOGIN_REQUIRED_MSG = "You must log in to access your account"
_CONFIRMATION_NOT_SENT_MSG = "Could not send confirmation email"
_PASSWORD_SAME_AS_EMAIL_MSG = "Password cannot be the same as your email address"  # nosec B105

_GRAVATAR_SIZE = 128


# =============================================================================
# Outcomes
# =============================================================================


class OutcomeKind(str, Enum):
    """How an operation ended.

    Values:
        SUCCESS: The operation did what was asked.
        VALIDATION_FAILURE: Input was malformed; errors are field-keyed and
            params echo the submitted values.
        BUSINESS_FAILURE: Input was well-formed but the request was refused
            (bad credentials, used token, taken email).
    """

    SUCCESS = "success"
    VALIDATION_FAILURE = "validation_failure"
    BUSINESS_FAILURE = "business_failure"


class Target(str, Enum):
    """Symbolic page the web layer should redirect to or render."""

    REGISTER = "account.register"
    LOGIN = "account.login"
    RECOVER = "account.recover"
    PROFILE_SHOW = "profile.show"
    PROFILE_PASSWORD = "profile.password"
    INDEX = "application.index"


@dataclass(frozen=True)
class Outcome:
    """Result of a workflow operation.

    Attributes:
        kind: Success, validation failure or business failure.
        target: Where the web layer should send the caller next.
        message: User-facing flash message.
        identity: Email of the account the operation concerned, when the
            caller is entitled to know it.
        errors: Field name to validation messages.
        params: Submitted non-secret field values, for re-display.
        warnings: Secondary user-facing messages (e.g. mail not sent).
        password_change_required: The caller entered through a reset link
            and should now be shown the password-change form.
    """

    kind: OutcomeKind
    target: Target
    message: str
    identity: str | None = None
    errors: dict[str, list[str]] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()
    password_change_required: bool = False

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


# =============================================================================
# Helpers
# =============================================================================


@contextmanager
def _persistence(operation: str) -> Iterator[None]:
    """Translate database failures into PersistenceError.

    IntegrityError passes through untouched so callers can map uniqueness
    violations to a business outcome.
    """
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.error("Persistence failure", operation=operation, exc_info=True)
        raise PersistenceError(f"{operation} failed") from exc


def gravatar_url(email: str, size: int = _GRAVATAR_SIZE) -> str:
    """Build the Gravatar identicon URL for an email address.

    Nothing is fetched; the URL is stored on the profile for the web layer.
    """
    digest = hashlib.md5(  # nosec B324 - Gravatar's addressing scheme, not security
        email.strip().lower().encode(), usedforsecurity=False
    ).hexdigest()
    return f"https://www.gravatar.com/avatar/{digest}?d=identicon&s={size}"


def _display_name(account: Account) -> str:
    if account.profile is not None:
        return account.profile.name
    return account.email


def _token_invalid() -> Outcome:
    return Outcome(
        kind=OutcomeKind.BUSINESS_FAILURE,
        target=Target.INDEX,
        message=_TOKEN_INVALID_MSG,
    )


def _login_required() -> Outcome:
    return Outcome(
        kind=OutcomeKind.BUSINESS_FAILURE,
        target=Target.LOGIN,
        message=_LOGIN_REQUIRED_MSG,
    )


_SUBJECTS: dict[str, str] = {
    "confirm": "Welcome to {site}",
    "reset": "Reset your password at {site}",
}


# =============================================================================
# Workflow
# =============================================================================


class AccountWorkflow:
    """Registration, login, logout, confirmation and recovery sequences.

    One instance per request; every collaborator is passed in explicitly.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        credentials: CredentialStore,
        tokens: TokenService,
        sessions: SessionManager,
        mailer: Mailer,
    ) -> None:
        self.db = db
        self.credentials = credentials
        self.tokens = tokens
        self.sessions = sessions
        self.mailer = mailer

    @classmethod
    def for_session(cls, db: AsyncSession) -> "AccountWorkflow":
        """Build a workflow wired with configured default collaborators."""
        return cls(
            db,
            credentials=CredentialStore(),
            tokens=TokenService(db),
            sessions=SessionManager(),
            mailer=Mailer(),
        )

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    async def register(
        self,
        session: Session,
        email: str,
        password: str,
        confirm_password: str,
        name: str,
    ) -> Outcome:
        """Create an unconfirmed account and sign the caller in.

        All validation failures are reported together. A taken email is
        reported the same way whether the pre-check or the insert caught it.
        A confirmation email is sent when mail is configured; failing to
        send it does not fail registration.

        Args:
            session: The caller's session (logged in on success).
            email: Account email address.
            password: Chosen password.
            confirm_password: Repeated password.
            name: Display name for the profile.

        Returns:
            Outcome targeting the new profile on success.

        Raises:
            PersistenceError: Database failure.
        """
        email = (email or "").strip()
        name = (name or "").strip()
        params = {"email": email, "name": name}

        validation = Validation()
        validate_email(validation, email, "email")
        validate_password(validation, password, "password")
        if password:
            validation.check(password != email, "password", _PASSWORD_SAME_AS_EMAIL_MSG)
        if validation.required(
            confirm_password, "confirm_password", "Password verification required"
        ):
            validation.check(
                confirm_password == password,
                "confirm_password",
                "Provided passwords do not match",
            )
        validate_name(validation, name, "name")

        if validation.has_errors():
            logger.info("Registration rejected", fields=sorted(validation.errors))
            return Outcome(
                kind=OutcomeKind.VALIDATION_FAILURE,
                target=Target.REGISTER,
                message=_REGISTRATION_FAILED_MSG,
                errors=validation.errors,
                params=params,
            )

        with _persistence("register"):
            existing = await AccountRepository.get_by_email(self.db, email)
        if existing is not None:
            return self._email_taken(email, params)

        password_hash = self.credentials.hash(password)

        try:
            with _persistence("register"):
                account = await AccountRepository.create(
                    self.db, email=email, password_hash=password_hash
                )
                account.profile = await ProfileRepository.create(
                    self.db,
                    account_id=account.id,
                    name=name,
                    photo_url=gravatar_url(email),
                )
                account_id = account.id
                await self.db.commit()
        except IntegrityError:
            # Lost the race against a concurrent registration for this email
            await self.db.rollback()
            return self._email_taken(email, params)

        logger.info("Account registered", account_id=str(account_id))

        warnings: tuple[str, ...] = ()
        try:
            await self._send_verification(email, "confirm", name)
        except MailDeliveryError:
            logger.warning("Confirmation email not sent", exc_info=True)
            warnings = (_CONFIRMATION_NOT_SENT_MSG,)

        self.sessions.login(session, email, remember=False)
        return Outcome(
            kind=OutcomeKind.SUCCESS,
            target=Target.PROFILE_SHOW,
            message=f"Welcome, {name}",
            identity=email,
            warnings=warnings,
        )

    def _email_taken(self, email: str, params: dict[str, str]) -> Outcome:
        return Outcome(
            kind=OutcomeKind.BUSINESS_FAILURE,
            target=Target.REGISTER,
            message=f"Email '{email}' is already taken.",
            params=params,
        )

    # -------------------------------------------------------------------------
    # Sign in / sign out
    # -------------------------------------------------------------------------

    async def login(
        self,
        session: Session,
        email: str,
        password: str,
        remember: bool = False,
    ) -> Outcome:
        """Verify credentials and establish a session.

        Unknown email and wrong password produce the same outcome, and the
        unknown-email path still pays for one bcrypt comparison.

        Raises:
            PersistenceError: Database failure.
        """
        email = (email or "").strip()
        password = password or ""

        with _persistence("login"):
            account = await AccountRepository.get_by_email(self.db, email)

        if account is None:
            self.credentials.verify_dummy(password)
        elif self.credentials.verify(account.password_hash, password):
            self.sessions.login(session, account.email, remember=remember)
            logger.info("Signed in", account_id=str(account.id), remember=remember)
            return Outcome(
                kind=OutcomeKind.SUCCESS,
                target=Target.PROFILE_SHOW,
                message=f"Welcome back, {_display_name(account)}",
                identity=account.email,
            )

        logger.info("Sign-in failed")
        return Outcome(
            kind=OutcomeKind.BUSINESS_FAILURE,
            target=Target.LOGIN,
            message=_SIGN_IN_FAILED_MSG,
            params={"email": email},
        )

    def logout(self, session: Session) -> Outcome:
        """Clear the whole session. Always succeeds."""
        self.sessions.logout(session)
        return Outcome(
            kind=OutcomeKind.SUCCESS,
            target=Target.LOGIN,
            message="You have been successfully logged out",
        )

    async def current_account(self, session: Session) -> Account | None:
        """Resolve the session identity to its Account, if any.

        Raises:
            PersistenceError: Database failure.
        """
        identity = self.sessions.current_identity(session)
        if identity is None:
            return None
        with _persistence("current_account"):
            return await AccountRepository.get_by_email(self.db, identity)

    async def account_home(self, session: Session) -> Outcome:
        """Send a signed-in caller to their profile, anyone else to login."""
        account = await self.current_account(session)
        if account is None:
            return _login_required()
        return Outcome(
            kind=OutcomeKind.SUCCESS,
            target=Target.PROFILE_SHOW,
            message="",
            identity=account.email,
        )

    # -------------------------------------------------------------------------
    # Email confirmation
    # -------------------------------------------------------------------------

    async def confirm_email(self, secret: str) -> Outcome:
        """Mark the account behind a confirm token as confirmed.

        The token is consumed before the account is touched. If the update
        then fails the token stays spent and PersistenceError is raised.

        Raises:
            PersistenceError: Database failure.
        """
        with _persistence("confirm_email"):
            token = await self.tokens.lookup("confirm", secret)
            if token is None:
                return _token_invalid()

            email = token.email
            account = await AccountRepository.get_by_email(self.db, email)
            if account is None:
                return _token_invalid()
            account_id = account.id

            if not await self.tokens.consume(token):
                return _token_invalid()

            await AccountRepository.update(self.db, account_id, confirmed=True)
            await self.db.commit()

        logger.info("Email confirmed", account_id=str(account_id))
        return Outcome(
            kind=OutcomeKind.SUCCESS,
            target=Target.PROFILE_SHOW,
            message="Your email address has been confirmed",
            identity=email,
        )

    async def resend_confirmation(self, session: Session) -> Outcome:
        """Send a fresh confirmation email to the signed-in, unconfirmed caller.

        Raises:
            PersistenceError: Database failure.
        """
        account = await self.current_account(session)
        if account is None:
            return _login_required()

        email = account.email
        if account.confirmed:
            return Outcome(
                kind=OutcomeKind.BUSINESS_FAILURE,
                target=Target.PROFILE_SHOW,
                message="Your email address is already confirmed",
                identity=email,
            )
        if not self.mailer.has_email_capability():
            return Outcome(
                kind=OutcomeKind.BUSINESS_FAILURE,
                target=Target.PROFILE_SHOW,
                message=_CONFIRMATION_NOT_SENT_MSG,
                identity=email,
            )

        try:
            await self._send_verification(email, "confirm", _display_name(account))
        except MailDeliveryError:
            logger.warning("Confirmation email not sent", exc_info=True)
            return Outcome(
                kind=OutcomeKind.BUSINESS_FAILURE,
                target=Target.PROFILE_SHOW,
                message=_CONFIRMATION_NOT_SENT_MSG,
                identity=email,
            )

        return Outcome(
            kind=OutcomeKind.SUCCESS,
            target=Target.PROFILE_SHOW,
            message=f"A confirmation email has been sent to {email}.",
            identity=email,
        )

    # -------------------------------------------------------------------------
    # Password recovery
    # -------------------------------------------------------------------------

    def recovery_available(self) -> bool:
        """Recovery needs outbound mail; without it the form is not offered."""
        return self.mailer.has_email_capability()

    async def request_recovery(self, email: str) -> Outcome:
        """Email a password reset link if an account exists.

        The caller gets the same success outcome either way. Only the
        existing-account path issues a token and sends mail.

        Raises:
            PersistenceError: Database failure.
            MailDeliveryError: The reset email could not be sent.
        """
        email = (email or "").strip()

        validation = Validation()
        validate_email(validation, email, "email")
        if validation.has_errors():
            return Outcome(
                kind=OutcomeKind.VALIDATION_FAILURE,
                target=Target.RECOVER,
                message=_RECOVERY_FAILED_MSG,
                errors=validation.errors,
                params={"email": email},
            )

        with _persistence("request_recovery"):
            account = await AccountRepository.get_by_email(self.db, email)

        if account is not None:
            await self._send_verification(email, "reset", _display_name(account))
        else:
            logger.info("Recovery requested for unknown account")

        return Outcome(
            kind=OutcomeKind.SUCCESS,
            target=Target.LOGIN,
            message=f"A password reset request has been sent to {email}.",
        )

    async def reset_password(self, session: Session, secret: str) -> Outcome:
        """Sign the caller in through a reset token.

        Possession of the token is the only credential. The token is consumed
        before the session is granted, and the session is marked so the next
        password change may skip the current password.

        Raises:
            PersistenceError: Database failure.
        """
        with _persistence("reset_password"):
            token = await self.tokens.lookup("reset", secret)
            if token is None:
                return _token_invalid()

            email = token.email
            account = await AccountRepository.get_by_email(self.db, email)
            if account is None:
                return _token_invalid()
            account_id = account.id

            if not await self.tokens.consume(token):
                return _token_invalid()

        self.sessions.login(session, email, remember=False)
        self.sessions.grant_password_reset(session)
        logger.info("Signed in via reset token", account_id=str(account_id))
        return Outcome(
            kind=OutcomeKind.SUCCESS,
            target=Target.PROFILE_PASSWORD,
            message="Please now enter a new password",
            identity=email,
            password_change_required=True,
        )

    async def change_password(
        self,
        session: Session,
        new_password: str,
        confirm_password: str,
        current_password: str | None = None,
    ) -> Outcome:
        """Replace the signed-in caller's password.

        The current password is required unless the session came through a
        reset link within the reset window.

        Raises:
            PersistenceError: Database failure.
        """
        account = await self.current_account(session)
        if account is None:
            return _login_required()

        email = account.email
        validation = Validation()
        if not self.sessions.password_reset_allowed(session):
            if validation.required(
                current_password, "current_password", "Current password required"
            ) and not self.credentials.verify(
                account.password_hash, current_password or ""
            ):
                validation.error("current_password", "Current password incorrect")

        validate_password(validation, new_password, "password")
        if new_password:
            validation.check(
                new_password != email, "password", _PASSWORD_SAME_AS_EMAIL_MSG
            )
        if validation.required(
            confirm_password, "confirm_password", "Password verification required"
        ):
            validation.check(
                confirm_password == new_password,
                "confirm_password",
                "Provided passwords do not match",
            )

        if validation.has_errors():
            return Outcome(
                kind=OutcomeKind.VALIDATION_FAILURE,
                target=Target.PROFILE_PASSWORD,
                message=_PASSWORD_CHANGE_FAILED_MSG,
                identity=email,
                errors=validation.errors,
            )

        new_hash = self.credentials.hash(new_password)
        account_id = account.id
        with _persistence("change_password"):
            await AccountRepository.update(self.db, account_id, password_hash=new_hash)
            await self.db.commit()

        self.sessions.revoke_password_reset(session)
        logger.info("Password changed", account_id=str(account_id))
        return Outcome(
            kind=OutcomeKind.SUCCESS,
            target=Target.PROFILE_SHOW,
            message="Your password has been updated",
            identity=email,
        )

    # -------------------------------------------------------------------------
    # Mail
    # -------------------------------------------------------------------------

    async def _send_verification(self, email: str, kind: str, name: str) -> None:
        """Issue a token of kind and email its link.

        No token is issued when mail is not configured.

        Raises:
            PersistenceError: The token could not be stored.
            MailDeliveryError: The email could not be sent.
        """
        if not self.mailer.has_email_capability():
            return

        with _persistence("issue_token"):
            secret = await self.tokens.issue(email, kind)

        await self.mailer.send(
            email,
            _SUBJECTS[kind].format(site=settings.site_name),
            kind,
            {"name": name, "link": verification_link(kind, secret)},
        )
