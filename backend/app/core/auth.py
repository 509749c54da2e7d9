"""Resolve each request to the user id vouched for by the identity provider.

Tokens are issued elsewhere; this module only verifies the signature and
reads the ``sub`` claim.
"""
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_user_id(token: str) -> UUID:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise _unauthorized("Could not validate credentials")

    subject = payload.get("sub")
    if subject is None:
        raise _unauthorized("Token has no subject")
    try:
        return UUID(str(subject))
    except ValueError:
        raise _unauthorized("Token subject is not a user id")


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> UUID:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")
    return decode_user_id(credentials.credentials)
