"""
Email service with provider abstraction.

Supports the Resend API (default) and SMTP. When the selected provider has
no credentials the service degrades to logging each message instead of
failing the caller. Transport errors surface as ``DeliveryFailure``.
"""

from __future__ import annotations

import asyncio
import ssl
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib
import httpx
import structlog

from tasknest.config import Settings, get_settings
from tasknest.errors import DeliveryFailure

logger = structlog.get_logger()


class BaseEmailProvider(ABC):
    """Abstract base class for email delivery providers."""

    name: str = "base"

    @abstractmethod
    async def send(
        self,
        to_email: str,
        from_header: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send an email. Returns True if it left the process.

        Raises DeliveryFailure on transport errors.
        """
        ...


class UnconfiguredProvider(BaseEmailProvider):
    """Stand-in used when no provider credentials are configured."""

    name = "unconfigured"

    def __init__(self, reason: str) -> None:
        self.reason = reason

    async def send(
        self,
        to_email: str,
        from_header: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        logger.warning("email_skipped_unconfigured", to=to_email, subject=subject, reason=self.reason)
        return False


class ResendProvider(BaseEmailProvider):
    """Send emails via Resend API."""

    name = "resend"
    endpoint = "https://api.resend.com/emails"

    def __init__(self, api_key: str, client: httpx.AsyncClient | None = None) -> None:
        self.api_key = api_key
        self._client = client

    async def send(
        self,
        to_email: str,
        from_header: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via Resend HTTP API."""
        payload = {
            "from": from_header,
            "to": [to_email],
            "subject": subject,
            "html": html_body,
            "text": text_body,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            if self._client is not None:
                response = await self._client.post(self.endpoint, headers=headers, json=payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(self.endpoint, headers=headers, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            msg = f"Resend delivery to {to_email} failed: {exc}"
            raise DeliveryFailure(msg) from exc
        logger.info("email_sent", to=to_email, subject=subject, provider=self.name)
        return True


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    async def send(
        self,
        to_email: str,
        from_header: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via SMTP."""
        msg = MIMEMultipart("alternative")
        msg["From"] = from_header
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            tls_context = ssl.create_default_context() if self.use_tls else None
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=tls_context,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            detail = f"SMTP delivery to {to_email} failed: {exc}"
            raise DeliveryFailure(detail) from exc
        logger.info("email_sent", to=to_email, subject=subject, provider=self.name)
        return True


def create_provider(settings: Settings) -> BaseEmailProvider:
    """Create email provider based on configuration."""
    provider_name = settings.email_provider.lower()

    if provider_name == "resend":
        if not settings.resend_api_key:
            logger.warning("email_not_configured", provider=provider_name)
            return UnconfiguredProvider("RESEND_API_KEY is not set")
        return ResendProvider(api_key=settings.resend_api_key)
    if provider_name == "smtp":
        if not settings.smtp_host:
            logger.warning("email_not_configured", provider=provider_name)
            return UnconfiguredProvider("SMTP host is not set")
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


class EmailService:
    """
    High-level email service for TaskNest.

    Adds the sender header and bounds every send with a timeout so a hung
    transport cannot stall a reminder batch.
    """

    def __init__(
        self,
        provider: BaseEmailProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.provider = provider or create_provider(self.settings)
        self.timeout = self.settings.email_timeout_seconds

    @property
    def from_header(self) -> str:
        return f"{self.settings.email_from_name} <{self.settings.email_from_address}>"

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        from_header: str | None = None,
    ) -> bool:
        """
        Send one email.

        Returns False when no provider is configured and nothing was sent.

        Raises:
            DeliveryFailure: If the provider fails or does not answer in time.
        """
        try:
            return await asyncio.wait_for(
                self.provider.send(to, from_header or self.from_header, subject, html_body, text_body),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            msg = f"Email to {to} timed out after {self.timeout}s"
            raise DeliveryFailure(msg) from exc
