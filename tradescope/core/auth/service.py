"""Authentication service for user management."""

from __future__ import annotations

from typing import Optional, Tuple

from sqlalchemy.orm import Session

from tradescope.db.models import User, utcnow
from tradescope.core.auth.security import (
    verify_password,
    get_password_hash,
    create_access_token,
)


class AuthService:
    """Service for user authentication and management."""

    def __init__(self, db: Session):
        self.db = db

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email address."""
        return self.db.query(User).filter(User.email == email.lower()).first()

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        return self.db.query(User).filter(User.id == user_id).first()

    def register(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> Tuple[User, str]:
        """Register a new user.

        Returns:
            Tuple of (user, access_token)

        Raises:
            ValueError: If email already exists
        """
        if self.get_user_by_email(email):
            raise ValueError("An account with this email already exists")

        user = User(
            email=email.lower(),
            display_name=display_name,
            password_hash=get_password_hash(password),
            is_active=True,
        )
        self.db.add(user)
        self.db.commit()

        token = create_access_token(data={"sub": user.id})
        return user, token

    def login(self, email: str, password: str) -> Tuple[User, str]:
        """Authenticate a user and return access token.

        Raises:
            ValueError: If credentials are invalid
        """
        user = self.get_user_by_email(email)
        if not user or not user.password_hash:
            raise ValueError("Invalid email or password")

        if not verify_password(password, user.password_hash):
            raise ValueError("Invalid email or password")

        if not user.is_active:
            raise ValueError("User account is disabled")

        user.last_login_at = utcnow()
        self.db.commit()

        token = create_access_token(data={"sub": user.id})
        return user, token

    def issue_token(self, user: User) -> str:
        """Mint an access token without a password check (CLI use)."""
        return create_access_token(data={"sub": user.id})


def get_auth_service(db: Session) -> AuthService:
    """Factory function to get an AuthService instance."""
    return AuthService(db)
