"""Email sending via Resend API.

Plain-text templates for the two verification flows, delivered with a simple
HTTP POST to Resend. When no API key is configured the mailer reports no
capability and send() is a silent no-op.
"""

import logging
from collections.abc import Mapping
from urllib.parse import quote

import httpx

from baseapp.core.config import settings
from baseapp.core.errors import MailDeliveryError

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"

_TEMPLATES: dict[str, str] = {
    "confirm": (
        "Hello {name},\n\n"
        "Thanks for signing up at {site}. Please confirm your email address "
        "by following this link:\n\n{link}\n\n"
        "If you didn't create this account, you can safely ignore this email."
    ),
    "reset": (
        "Hello {name},\n\n"
        "Someone asked to reset the password for your account at {site}. "
        "Follow this link to choose a new one:\n\n{link}\n\n"
        "This link can be used once. If you didn't request this, "
        "you can safely ignore this email."
    ),
}


def verification_link(kind: str, secret: str) -> str:
    """Build the link a verification email points to.

    Args:
        kind: Token kind ("confirm" or "reset").
        secret: Plain token secret.

    Returns:
        Absolute URL under settings.callback_host.
    """
    host = settings.callback_host.rstrip("/")
    return f"{host}/account/{quote(kind)}/{quote(secret)}"


def render_template(template_name: str, template_args: Mapping[str, object]) -> str:
    """Render a named plain-text template.

    Raises:
        MailDeliveryError: If the template is unknown or an argument is missing.
    """
    template = _TEMPLATES.get(template_name)
    if template is None:
        raise MailDeliveryError(f"Unknown email template '{template_name}'")
    args = {"site": settings.site_name, **template_args}
    try:
        return template.format(**args)
    except KeyError as exc:
        raise MailDeliveryError(
            f"Email template '{template_name}' is missing argument {exc}"
        ) from exc


class Mailer:
    """Outbound mail collaborator."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        email_from: str | None = None,
        reply_to: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the mailer.

        Args:
            api_key: Resend API key. Defaults to settings.resend_api_key.
            email_from: Sender address. Defaults to settings.email_from.
            reply_to: Reply-To address. Defaults to settings.email_reply_to.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._api_key = (
            api_key
            if api_key is not None
            else settings.resend_api_key.get_secret_value()
        )
        self._email_from = email_from or settings.email_from
        self._reply_to = reply_to or settings.email_reply_to
        self._timeout = timeout or settings.mail_timeout_seconds
        self._transport = transport

    def has_email_capability(self) -> bool:
        """True when an API key is configured."""
        return bool(self._api_key)

    async def send(
        self,
        to_email: str,
        subject: str,
        template_name: str,
        template_args: Mapping[str, object],
    ) -> None:
        """Render a template and deliver it to one recipient.

        Does nothing when mail is not configured.

        Args:
            to_email: Recipient email address.
            subject: Subject line.
            template_name: Key of the plain-text template ("confirm", "reset").
            template_args: Values substituted into the template.

        Raises:
            MailDeliveryError: If rendering fails or Resend rejects the request.
        """
        if not self.has_email_capability():
            logger.debug("Mail not configured, skipping '%s' email", template_name)
            return

        text = render_template(template_name, template_args)

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    _RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._email_from,
                        "reply_to": self._reply_to,
                        "to": to_email,
                        "subject": subject,
                        "text": text,
                    },
                    timeout=self._timeout,
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise MailDeliveryError(f"Failed to send '{template_name}' email") from exc

        logger.info("Mail sent", extra={"template": template_name})
