"""Resend integration for transactional email."""

import logging
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from potion.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """The email provider rejected or failed to accept a message."""


class ResendClient:
    """Client for the Resend email API."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = settings.RESEND_API_KEY if api_key is None else api_key
        self.base_url = base_url or settings.RESEND_API_URL
        self.from_address = settings.EMAIL_FROM

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _post(self, payload: dict) -> dict:
        async with httpx.AsyncClient(base_url=self.base_url, timeout=30.0) as client:
            response = await client.post(
                "/emails",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
            response.raise_for_status()
            return response.json()

    async def send_email(self, to: str, subject: str, html: str) -> dict:
        """
        Send one email.
        Returns dict with 'id' (provider message id).
        """
        if not self.api_key:
            # Dev mode - just log
            logger.info("[DEV] Email to %s: %s", to, subject)
            return {"id": "dev_mode"}

        try:
            return await self._post({
                "from": self.from_address,
                "to": [to],
                "subject": subject,
                "html": html,
            })
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Resend error: {e}") from e
