"""
FontFlow Backend — Bearer Token Authentication
================================================

What:  Resolves the calling user from an `Authorization: Bearer <jwt>` header.
How:   python-jose verifies the signature and expiry with JWT_SECRET; the user
       id is read from `sub`, falling back to `id` / `userId` for tokens issued
       by older versions of the auth service.
Who:   Every /api/fonts route depends on get_current_user().

Tokens are issued elsewhere. There is no users table here: the id in the
token is the owner id stored on FontAsset rows.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from fontflow.config import settings
from fontflow.exceptions import AuthenticationError
from fontflow.models.font_asset import USER_ID_MAX_LENGTH

logger = logging.getLogger(__name__)

# auto_error=False: a missing header must produce our 401 body, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)

USER_ID_CLAIMS = ("sub", "id", "userId")


class CurrentUser(BaseModel):
    id: str


def create_access_token(
    user_id: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Issue a token in the auth service's format (local development and tests)."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> CurrentUser:
    """
    Verify `token` and extract the user.

    Raises:
        AuthenticationError: Bad signature, expired, no user id claim, or a
            user id longer than the font_assets.user_id column.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.info("JWT verification failed: %s", exc)
        raise AuthenticationError(message="Invalid token") from exc

    user_id = next((payload[claim] for claim in USER_ID_CLAIMS if payload.get(claim)), None)
    if not user_id:
        raise AuthenticationError(message="Token carries no user id")
    user_id = str(user_id)
    if len(user_id) > USER_ID_MAX_LENGTH:
        raise AuthenticationError(message="Token user id is too long")
    return CurrentUser(id=user_id)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(message="Missing or malformed token")
    return decode_access_token(credentials.credentials)
