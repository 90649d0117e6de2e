"""Outgoing email through the Resend or SendGrid HTTP APIs."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from ..config.schema import EmailConfig
from ..settings.store import SettingsStore
from .base import Tool


class EmailError(Exception):
    """Raised when an email cannot be sent."""


class EmailClient:
    """Sends plain-text mail with the configured provider."""

    def __init__(self, config: EmailConfig) -> None:
        self._config = config

    @property
    def configured(self) -> bool:
        if self._config.provider == "sendgrid":
            return bool(self._config.sendgrid_api_key)
        return bool(self._config.resend_api_key)

    async def send(self, to: str, subject: str, body: str) -> str:
        """Send one message. Returns the provider's message id when given."""
        if "@" not in to:
            raise EmailError(f"invalid recipient: {to}")
        if not self.configured:
            raise EmailError(f"email provider '{self._config.provider}' has no API key")

        if self._config.provider == "sendgrid":
            url = "https://api.sendgrid.com/v3/mail/send"
            headers = {"Authorization": f"Bearer {self._config.sendgrid_api_key}"}
            payload: dict[str, Any] = {
                "personalizations": [{"to": [{"email": to}]}],
                "from": {"email": self._config.from_address},
                "subject": subject,
                "content": [{"type": "text/plain", "value": body}],
            }
        else:
            url = "https://api.resend.com/emails"
            headers = {"Authorization": f"Bearer {self._config.resend_api_key}"}
            payload = {
                "from": self._config.from_address,
                "to": [to],
                "subject": subject,
                "text": body,
            }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url, headers=headers, json=payload, timeout=self._config.timeout
                )
        except httpx.HTTPError as e:
            raise EmailError(f"email send failed: {e}") from e
        if response.status_code >= 300:
            raise EmailError(f"email send failed: HTTP {response.status_code}")

        message_id = ""
        if response.content:
            try:
                message_id = str(response.json().get("id", ""))
            except ValueError:
                message_id = ""
        logger.info(f"Email sent to {to} via {self._config.provider}")
        return message_id


class DraftEmailTool(Tool):
    """Let the reasoning loop prepare an email; only the user sends it."""

    def __init__(self, settings: SettingsStore):
        self._settings = settings

    @property
    def name(self) -> str:
        return "draft_email"

    @property
    def description(self) -> str:
        return (
            "Save a plain-text email as the current draft. The user must reply "
            "send_email to actually send it."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "to": {"type": "string", "description": "Recipient address"},
                "subject": {"type": "string", "description": "Subject line"},
                "body": {"type": "string", "description": "Message body"},
            },
            "required": ["to", "subject", "body"],
        }

    async def execute(self, to: str, subject: str, body: str, **kwargs: Any) -> str:
        if "@" not in to:
            return f"Error: '{to}' is not an email address"
        draft = self._settings.set_email_draft(to, subject, body)
        return f"Draft saved for {draft.to} ({draft.subject}). Ask the user to reply send_email."
