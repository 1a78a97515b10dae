import httpx
from typing import Optional
import logging

from app.config import settings

logger = logging.getLogger(__name__)


def mask_email(email: str) -> str:
    """j***@example.com style masking for logs."""
    local, _, domain = (email or "").partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


class EmailService:
    """Transactional email via the Resend HTTP API."""

    def __init__(
        self,
        api_key: str = "",
        api_url: str = "https://api.resend.com/emails",
        from_email: str = "",
        from_name: str = "Talents.MY",
        timeout: float = 10,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email.

        Returns:
            True if the provider accepted it, False otherwise
        """
        if not self.is_configured:
            logger.warning("Email not configured. RESEND_API_KEY missing.")
            return False

        payload = {
            "from": f"{self.from_name} <{self.from_email}>",
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }
        if text_content:
            payload["text"] = text_content

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    timeout=self.timeout,
                )
                response.raise_for_status()
            logger.info(f"Email sent to {mask_email(to_email)}: {response.json().get('id')}")
            return True
        except httpx.HTTPStatusError as e:
            logger.error(f"Resend rejected email to {mask_email(to_email)}: {e.response.status_code} {e.response.text}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to send email to {mask_email(to_email)}: {e}")
            return False

    async def send_login_code(self, to_email: str, code: str, expiry_minutes: int) -> bool:
        subject = "Your Talents.MY Login Code"
        html_content = f"""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <h2 style="color: #667eea;">Talents.MY Login Code</h2>
                <p>Your one-time password (OTP) is:</p>
                <div style="background: #f5f5f5; padding: 20px; text-align: center; font-size: 32px; font-weight: bold; letter-spacing: 8px; margin: 20px 0;">
                    {code}
                </div>
                <p style="color: #666;">This code will expire in {expiry_minutes} minutes.</p>
                <p style="color: #666; font-size: 12px;">If you didn't request this code, please ignore this email.</p>
                <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
                <p style="color: #999; font-size: 12px;">Talents.MY - TikTok Affiliate Campaign Management</p>
            </div>
        """
        text_content = f"Your Talents.MY login code is {code}. It expires in {expiry_minutes} minutes."
        return await self.send_email(to_email, subject, html_content, text_content)


def get_email_service() -> EmailService:
    """Get configured email service instance."""
    return EmailService(
        api_key=settings.RESEND_API_KEY,
        api_url=settings.RESEND_API_URL,
        from_email=settings.FROM_EMAIL,
        from_name=settings.FROM_NAME,
    )
