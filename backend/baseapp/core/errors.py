"""Collaborator failure classes.

Expected negative outcomes (bad credentials, used tokens, taken emails,
malformed input) are never raised; the account workflow reports them as
Outcome values. The classes here cover the failures that are NOT expected:
the database or the mail API misbehaving. The web layer maps them to a
generic 500-style response.
"""


class AccountError(Exception):
    """Base class for unrecoverable account-core errors.

    Attributes:
        code: Machine-readable error code (e.g., "PERSISTENCE_ERROR").
        message: Human-readable error message. Safe to log, not to display.
    """

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class PersistenceError(AccountError):
    """The persistence collaborator failed.

    Wraps SQLAlchemy errors other than the email uniqueness violation, which
    the workflow reports as an ordinary "taken" outcome.
    """

    def __init__(self, message: str = "Database operation failed") -> None:
        super().__init__(code="PERSISTENCE_ERROR", message=message)


class MailDeliveryError(AccountError):
    """The mail collaborator could not render or deliver a message.

    Registration logs and swallows this; account recovery propagates it.
    """

    def __init__(self, message: str = "Mail delivery failed") -> None:
        super().__init__(code="MAIL_DELIVERY_ERROR", message=message)
