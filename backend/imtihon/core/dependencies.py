"""Request dependencies: the caller's identity, role gates, display language."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from imtihon.core.security import InvalidAccessToken, decode_access_token
from imtihon.db.session import get_db
from imtihon.models.content import Language
from imtihon.models.user import User, UserRole

DbSession = Annotated[Session, Depends(get_db)]


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise _unauthorized("Authorization header missing")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Invalid authorization header format. Expected: Bearer <token>")
    return token.strip()


def get_current_user(
    db: DbSession,
    authorization: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the bearer token to an active user."""
    try:
        claims = decode_access_token(_bearer_token(authorization))
    except InvalidAccessToken as e:
        raise _unauthorized(str(e)) from e

    user = db.get(User, claims.user_id)
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*allowed_roles: UserRole):
    """Build a dependency that admits only users holding one of ``allowed_roles``."""
    allowed = {role.value for role in allowed_roles}

    def role_checker(current_user: CurrentUser) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {sorted(allowed)}",
            )
        return current_user

    return role_checker


AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]


def get_language(accept_language: Annotated[str | None, Header()] = None) -> Language:
    return Language.from_header(accept_language)


RequestLanguage = Annotated[Language, Depends(get_language)]
