"""Field-keyed input validation.

Form handlers must report every failing field at once, so the helpers here
record messages on a Validation accumulator instead of raising on the first
problem. The caller checks has_errors() and re-displays the form.

Rules:
- email: RFC-valid address (email-validator, syntax only), <= 255 chars
- password: 8-72 bytes, at least one letter, one number, one special character
- name: non-blank, <= 255 chars
"""

import re

from email_validator import EmailNotValidError
from email_validator import validate_email as check_email_format

_MAX_EMAIL_LENGTH = 255
_MAX_NAME_LENGTH = 255
_MIN_PASSWORD_LENGTH = 8
# bcrypt silently ignores (or rejects, depending on version) input past 72 bytes
_MAX_PASSWORD_BYTES = 72


class Validation:
    """Accumulates validation failures keyed by form field.

    Attributes:
        errors: Field name to list of messages, in the order recorded.
    """

    def __init__(self) -> None:
        self.errors: dict[str, list[str]] = {}

    def error(self, key: str, message: str) -> None:
        """Record a failure for key."""
        self.errors.setdefault(key, []).append(message)

    def check(self, condition: bool, key: str, message: str) -> bool:
        """Record message for key unless condition holds.

        Returns:
            The condition, so checks can be chained.
        """
        if not condition:
            self.error(key, message)
        return condition

    def required(self, value: str | None, key: str, message: str) -> bool:
        """Record message for key if value is missing or blank."""
        return self.check(bool(value and value.strip()), key, message)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def has_error(self, key: str) -> bool:
        return key in self.errors


def validate_email(validation: Validation, email: str | None, key: str = "email") -> None:
    """Record a failure unless email is a well-formed address."""
    required = validation.required(email, key, "Email address is required")
    if not required or email is None:
        return
    if len(email) > _MAX_EMAIL_LENGTH:
        validation.error(key, f"Email must be at most {_MAX_EMAIL_LENGTH} characters")
        return
    try:
        # Format only: no DNS lookups, and the reserved .test domain is allowed
        check_email_format(
            email.strip(), check_deliverability=False, test_environment=True
        )
    except EmailNotValidError:
        validation.error(key, "Must be a valid email address")


def validate_password(
    validation: Validation, password: str | None, key: str = "password"
) -> None:
    """Record the first strength rule password breaks, if any."""
    required = validation.required(password, key, "Password is required")
    if not required or password is None:
        return
    if len(password) < _MIN_PASSWORD_LENGTH:
        validation.error(
            key, f"Password must be at least {_MIN_PASSWORD_LENGTH} characters"
        )
    elif len(password.encode()) > _MAX_PASSWORD_BYTES:
        validation.error(key, f"Password must be at most {_MAX_PASSWORD_BYTES} bytes")
    elif not re.search(r"[a-zA-Z]", password):
        validation.error(key, "Password must contain at least one letter")
    elif not re.search(r"\d", password):
        validation.error(key, "Password must contain at least one number")
    elif not re.search(r"[^a-zA-Z\d]", password):
        validation.error(key, "Password must contain at least one special character")


def validate_name(validation: Validation, name: str | None, key: str = "name") -> None:
    """Record a failure unless name is a usable display name."""
    required = validation.required(name, key, "Name is required")
    if not required or name is None:
        return
    validation.check(
        len(name.strip()) <= _MAX_NAME_LENGTH,
        key,
        f"Name must be at most {_MAX_NAME_LENGTH} characters",
    )
