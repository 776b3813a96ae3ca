"""Authentication dependencies for FastAPI"""

from typing import Optional

from authlib.jose.errors import InvalidTokenError
from fastapi import Depends, HTTPException, Request, status

from event_hub.auth import jwt_utils as jwt_module
from event_hub.auth.models import User
from event_hub.logging_config import get_logger

logger = get_logger(__name__)


async def get_current_user_optional(request: Request) -> Optional[User]:
    """
    Resolve the session user from the Authorization header.

    Returns:
        - Authenticated User if a valid Bearer token is provided
        - None if there is no Bearer token

    Raises:
        HTTPException: 401 if a token is provided but invalid/expired
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None

    token = auth_header[len("Bearer ") :]

    try:
        return jwt_module.jwt_utils.extract_user(token)
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Like get_current_user_optional but a session is mandatory"""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
