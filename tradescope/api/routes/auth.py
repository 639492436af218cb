"""Authentication API routes."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from tradescope.api.deps import get_current_user, get_db, limiter
from tradescope.config import get_settings
from tradescope.core.auth import get_auth_service
from tradescope.db.models import User

router = APIRouter(prefix="/auth", tags=["auth"])


# Request/Response Models

class RegisterRequest(BaseModel):
    """User registration request."""

    email: EmailStr
    password: str = Field(..., min_length=8)
    display_name: Optional[str] = None


class LoginRequest(BaseModel):
    """User login request."""

    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """User info response."""

    id: str
    email: str
    display_name: Optional[str]
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime]


class AuthResponse(BaseModel):
    """Authentication response with user and token."""

    user: UserResponse
    access_token: str
    token_type: str = "bearer"


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        is_active=user.is_active,
        created_at=user.created_at,
        last_login_at=user.last_login_at,
    )


def _set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        samesite="lax",
    )


# Public Routes (no auth required)

@router.post("/register", response_model=AuthResponse)
@limiter.limit("5/minute")
def register(
    request: Request,
    response: Response,
    payload: RegisterRequest,
    db: Session = Depends(get_db),
):
    """Register a new user account."""
    auth_service = get_auth_service(db)

    try:
        user, token = auth_service.register(
            email=payload.email,
            password=payload.password,
            display_name=payload.display_name,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    _set_session_cookie(response, token)
    return AuthResponse(user=_user_response(user), access_token=token)


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")
def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    db: Session = Depends(get_db),
):
    """Login with email and password; also sets the session cookie."""
    auth_service = get_auth_service(db)

    try:
        user, token = auth_service.login(
            email=payload.email,
            password=payload.password,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    _set_session_cookie(response, token)
    return AuthResponse(user=_user_response(user), access_token=token)


@router.post("/logout")
def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(get_settings().session_cookie_name)
    return {"message": "Logged out successfully"}


# Protected Routes (auth required)

@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    user: User = Depends(get_current_user),
):
    """Get current user info."""
    return _user_response(user)
