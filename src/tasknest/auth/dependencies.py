"""FastAPI authentication dependencies."""

from __future__ import annotations

import hmac

import jwt
from fastapi import Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tasknest.auth.jwt import verify_token
from tasknest.config import get_settings
from tasknest.errors import Unauthenticated

_bearer = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> int:
    """
    Extract and verify the bearer JWT, return the caller's user id.

    Raises Unauthenticated (401) when the header is missing or the token
    does not verify.
    """
    if credentials is None:
        msg = "Not authenticated"
        raise Unauthenticated(msg)
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise Unauthenticated(str(e)) from e
    return int(payload["sub"])


async def verify_cron_secret(request: Request) -> None:
    """
    Guard for scheduler-triggered endpoints.

    When a cron secret is configured the request must carry
    ``Authorization: Bearer <secret>``. An empty secret leaves the endpoints open.
    """
    secret = get_settings().cron_secret
    if not secret:
        return
    header = request.headers.get("authorization", "")
    if not hmac.compare_digest(header.encode(), f"Bearer {secret}".encode()):
        msg = "Unauthorized"
        raise Unauthenticated(msg)
