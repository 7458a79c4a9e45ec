import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from chore_cycle.models.user import User
from chore_cycle.services.auth_service import auth_service

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is a 401 like any other bad credential
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """Resolve the bearer token to an active user"""
    if credentials is None:
        raise _unauthorized("Not authenticated")

    user_id = auth_service.verify_token(credentials.credentials)
    if user_id is None:
        raise _unauthorized("Invalid authentication credentials")

    user = auth_service.get_user_by_id(user_id)
    if user is None:
        logger.warning("Token for unknown user %s", user_id)
        raise _unauthorized("User not found")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )

    return user
