"""Transactional email delivery through Resend."""

import asyncio

import resend
import structlog

from app.config import settings
from app.core.exceptions import DependencyException

logger = structlog.get_logger(__name__)


class EmailService:
    """Thin wrapper over the Resend SDK."""

    @staticmethod
    async def send_email(to: str, subject: str, html: str) -> dict:
        """
        Send one HTML email.

        Args:
            to: Recipient address
            subject: Subject line
            html: Rendered HTML body

        Returns:
            Resend response payload

        Raises:
            DependencyException: If email is not configured or the send fails
        """
        if not settings.resend_api_key:
            logger.warning("email_not_configured", to=to, subject=subject)
            raise DependencyException("Email service not configured")

        resend.api_key = settings.resend_api_key
        params = {
            "from": settings.email_from,
            "to": [to],
            "subject": subject,
            "html": html,
        }

        try:
            # The SDK is synchronous
            response = await asyncio.to_thread(resend.Emails.send, params)
        except Exception as e:
            logger.error("email_send_failed", to=to, subject=subject, error=str(e))
            raise DependencyException(f"Failed to send email: {e}") from e

        logger.info("email_sent", to=to, subject=subject)
        return dict(response) if response else {}
