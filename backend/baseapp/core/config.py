"""Application configuration loaded from environment variables.

Settings for the database, session signing, password hashing, verification
token lifetimes and outbound mail. Uses pydantic-settings for validation and
.env file support.
"""

from datetime import timedelta

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "baseapp_dev_password"  # nosec B105

# Minimum length for SESSION_SECRET in production (256 bits = 32 bytes)
_MIN_SESSION_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "baseapp"
    database_user: str = "baseapp_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    site_name: str = "localhost"

    # Password hashing
    # bcrypt cost factor; changing it only affects hashes created afterwards
    bcrypt_rounds: int = 12

    # Sessions
    session_secret: SecretStr = SecretStr("")
    session_ttl_minutes: int = 60
    session_remember_days: int = 30
    password_reset_window_minutes: int = 10

    # Verification tokens
    token_length: int = 22
    confirm_token_ttl_hours: int = 24
    reset_token_ttl_minutes: int = 60

    # Email (Resend HTTP API)
    # Leaving resend_api_key empty disables outbound mail entirely
    resend_api_key: SecretStr = SecretStr("")
    email_from: str = "no-reply@example.org"
    email_reply_to: str = "support@example.org"
    mail_timeout_seconds: float = 10.0

    # Base URL embedded in confirmation and recovery links
    callback_host: str = "http://localhost:9000"

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def has_email_capability(self) -> bool:
        """True when outbound mail is configured."""
        return bool(self.resend_api_key.get_secret_value())

    @property
    def session_ttl(self) -> timedelta:
        """Lifetime of an ordinary (not remembered) session."""
        return timedelta(minutes=self.session_ttl_minutes)

    @property
    def session_remember_ttl(self) -> timedelta:
        """Lifetime of a "remember me" session."""
        return timedelta(days=self.session_remember_days)

    @property
    def confirm_token_ttl(self) -> timedelta:
        return timedelta(hours=self.confirm_token_ttl_hours)

    @property
    def reset_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.reset_token_ttl_minutes)

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Security: Prevents deployment with known insecure defaults.
        Checks:
        - bcrypt cost factor within the range bcrypt accepts (all environments)
        - Verification token length carries at least 128 bits (all environments)
        - Database password must not be the default in production
        - SESSION_SECRET must be set and >= 32 chars in production
        """
        if not 4 <= self.bcrypt_rounds <= 31:
            msg = f"BCRYPT_ROUNDS must be between 4 and 31. Got: {self.bcrypt_rounds}"
            raise ValueError(msg)

        # 22 alphanumeric characters = 22 * log2(62) ~ 131 bits
        if self.token_length < 22:
            msg = f"TOKEN_LENGTH must be at least 22. Got: {self.token_length}"
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.session_secret.get_secret_value()
            if len(secret_value) < _MIN_SESSION_SECRET_LENGTH:
                msg = (
                    f"SESSION_SECRET must be at least {_MIN_SESSION_SECRET_LENGTH} "
                    'characters in production. Generate with: python -c "import '
                    'secrets; print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

        return self


settings = Settings()
