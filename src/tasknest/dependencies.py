"""Shared FastAPI dependencies."""

from fastapi import Request

from tasknest.email.service import EmailService


def get_email_service(request: Request) -> EmailService:
    """Return the app's email service, building a default one on first use."""
    service: EmailService | None = getattr(request.app.state, "email", None)
    if service is None:
        service = EmailService()
        request.app.state.email = service
    return service
