"""External service integrations."""

from potion.integrations.resend_client import ResendClient

__all__ = [
    "ResendClient",
]
