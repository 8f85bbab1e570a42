"""Email delivery for autotune results, via the SendGrid v3 API."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

import httpx

from autotune_web.config import Settings

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
SENDER_NAME = "Autotune"
SUBJECT = "Autotune Results"


class EmailDispatchError(RuntimeError):
    """SendGrid is not configured or rejected the message."""


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes

    def encoded(self) -> str:
        return base64.b64encode(self.content).decode("ascii")


def build_message(
    sender: str,
    recipient: str,
    html_body: str,
    attachments: list[EmailAttachment],
) -> dict:
    """Build the SendGrid ``mail/send`` payload for a single recipient."""
    message: dict = {
        "personalizations": [{"to": [{"email": recipient}]}],
        "from": {"email": sender, "name": SENDER_NAME},
        "subject": SUBJECT,
        "content": [{"type": "text/html", "value": html_body}],
    }
    if attachments:
        message["attachments"] = [
            {"content": a.encoded(), "filename": a.filename, "disposition": "attachment"}
            for a in attachments
        ]
    return message


class SendGridMailer:
    """Sends one HTML email per call. Use as a context manager so the HTTP pool is closed."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.from_address = from_address
        self._api_key = api_key
        self._client = httpx.Client(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "SendGridMailer":
        return cls(
            settings.sendgrid_api_key,
            settings.sendgrid_from_address,
            timeout=settings.http_timeout,
            **kwargs,
        )

    def __enter__(self) -> "SendGridMailer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def send(self, recipient: str, html_body: str, attachments: list[EmailAttachment]) -> None:
        """Send the results email. Raises EmailDispatchError on any failure."""
        if not self._api_key:
            raise EmailDispatchError("SENDGRID_API_KEY is not configured")
        if not recipient:
            raise EmailDispatchError("job has no recipient address")

        payload = build_message(self.from_address, recipient, html_body, attachments)
        try:
            response = self._client.post(
                SENDGRID_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.error("email_send_failed: recipient=%s error=%s", recipient, exc)
            raise EmailDispatchError(f"SendGrid request failed: {exc}") from exc

        if response.status_code >= 300:
            logger.error(
                "email_send_failed: recipient=%s status=%d body=%s",
                recipient,
                response.status_code,
                response.text[:500],
            )
            raise EmailDispatchError(f"SendGrid returned HTTP {response.status_code}")

        logger.info("email_sent: recipient=%s attachments=%d", recipient, len(attachments))
