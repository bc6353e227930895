from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from rr_messaging.database.connection import mongo_db_dependency
from rr_messaging.repositories.user_repository import UserRepository
from rr_messaging.utils.security import decode_access_token, subject_of


bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db=Depends(mongo_db_dependency),
) -> dict:
    if credentials is None:
        raise _unauthorized("Not authorized, no token provided")
    try:
        user_id = subject_of(decode_access_token(credentials.credentials))
    except jwt.InvalidTokenError:
        raise _unauthorized("Not authorized, token failed or expired")
    user = await UserRepository(db).get_user_by_id(user_id)
    if not user:
        raise _unauthorized("Not authorized, user not found")
    return user
