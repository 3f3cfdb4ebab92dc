"""Async Resend email client."""

from __future__ import annotations

import base64
import logging

import httpx

from competitor_intel.errors import NotifyError

logger = logging.getLogger(__name__)

RESEND_EMAILS_URL = "https://api.resend.com/emails"


class ResendNotifier:
    """Send report emails through the Resend HTTP API."""

    def __init__(self, api_key: str, from_email: str, timeout: int = 30):
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout

    async def send(
        self,
        recipient: str,
        subject: str,
        html_body: str,
        attachments: list[tuple[str, bytes]] | None = None,
    ) -> str:
        """Send one email. ``attachments`` are (filename, content) pairs.

        Returns the provider's message id. Raises NotifyError on failure.
        """
        if not self.api_key:
            raise NotifyError("RESEND_API_KEY not configured")

        payload = {
            "from": self.from_email,
            "to": [recipient],
            "subject": subject,
            "html": html_body,
        }
        if attachments:
            payload["attachments"] = [
                {"filename": name, "content": base64.b64encode(content).decode("ascii")}
                for name, content in attachments
            ]

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    RESEND_EMAILS_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise NotifyError(f"email to {recipient} timed out") from e
        except httpx.HTTPStatusError as e:
            raise NotifyError(
                f"email to {recipient} rejected: HTTP {e.response.status_code} {e.response.text[:200]}",
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise NotifyError(f"email to {recipient} failed: {e}") from e

        message_id = str(data.get("id", ""))
        logger.info("Report email sent to %s (id %s)", recipient, message_id or "?")
        return message_id
