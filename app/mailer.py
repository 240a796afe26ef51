import logging
from pathlib import Path
from typing import Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from . import config

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
TEMPLATES_DIR = Path(__file__).parent / "templates"

templates = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)


class MailerError(Exception):
    """Raised when an email could not be handed to the provider."""


def render_action_email(
    *,
    heading: str,
    full_name: str,
    intro: str,
    link: str,
    button_label: str,
    disclaimer: str,
    expires_hours: int = 24,
) -> str:
    return templates.get_template("action_email.html").render(
        heading=heading,
        full_name=full_name,
        intro=intro,
        link=link,
        button_label=button_label,
        disclaimer=disclaimer,
        expires_hours=expires_hours,
    )


class ResendMailer:
    def __init__(
        self,
        api_key: str,
        sender: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self._transport = transport

    async def send(self, to: str, subject: str, html: str) -> str:
        """Send an email and return the provider's message id."""
        if not self.api_key:
            raise MailerError("RESEND_API_KEY is not configured.")

        async with httpx.AsyncClient(timeout=15.0, transport=self._transport) as client:
            try:
                response = await client.post(
                    RESEND_URL,
                    json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                try:
                    msg = exc.response.json().get("message", str(exc))
                except ValueError:
                    msg = str(exc)
                raise MailerError(f"Resend API error ({exc.response.status_code}): {msg}") from exc
            except httpx.HTTPError as exc:
                raise MailerError(f"Could not reach Resend API: {exc}") from exc

        message_id = response.json().get("id", "")
        logger.info("Email %r sent to %s (id=%s)", subject, to, message_id)
        return message_id


def get_mailer() -> ResendMailer:
    return ResendMailer(config.RESEND_API_KEY, config.MAIL_FROM)
