"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from reflectio.auth.jwt import verify_token
from reflectio.errors import UnauthorizedError

_bearer = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> str:
    """Return the authenticated user's ID. Raises 401 on a missing or bad token."""
    if credentials is None:
        raise UnauthorizedError("Not authenticated")
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(str(e)) from e
    return str(payload["sub"])
