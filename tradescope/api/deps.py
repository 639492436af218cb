"""FastAPI dependencies."""

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from tradescope.config import get_settings
from tradescope.core.auth.security import decode_access_token
from tradescope.db.models import User

# HTTP Bearer for JWT tokens
http_bearer = HTTPBearer(auto_error=False)

# Rate limiter - key by IP address
limiter = Limiter(key_func=get_remote_address)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a session from the application's Database."""
    with request.app.state.database.session() as db:
        yield db


def _get_user_from_jwt(token: str, db: Session) -> Optional[User]:
    """Decode JWT token and return user."""
    payload = decode_access_token(token)
    if not payload:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if user and user.is_active:
        return user
    return None


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Optional[User]:
    """Get current user from the Bearer header or session cookie, None if absent."""
    user = None

    if bearer:
        user = _get_user_from_jwt(bearer.credentials, db)

    if not user:
        cookie = request.cookies.get(get_settings().session_cookie_name)
        if cookie:
            user = _get_user_from_jwt(cookie, db)

    return user


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Get the current authenticated user.

    Raises:
        HTTPException: 401 if neither a valid Bearer token nor session cookie is sent
    """
    if user:
        return user

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
