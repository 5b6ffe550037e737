from __future__ import annotations

import logging
from dataclasses import dataclass

from library_api.core.errors import AuthenticationError, ConflictError, NotFoundError
from library_api.core.security import hash_password, verify_password
from library_api.core.tokens import InvalidTokenError, TokenIssuer, TokenKind, TokenPair
from library_api.db.session import is_unique_violation
from library_api.models.user import Role, User
from library_api.schemas.auth import RegisterIn
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True)
class LoginResult:
    user: User
    tokens: TokenPair


class AuthService:
    """Registration, login, token rotation and identity lookup."""

    def __init__(self, db: Session, tokens: TokenIssuer) -> None:
        self.db = db
        self.tokens = tokens

    def _get_by_email(self, email: str) -> User | None:
        return self.db.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def email_exists(self, email: str) -> bool:
        return self._get_by_email(email.lower()) is not None

    def register(self, payload: RegisterIn) -> User:
        if self._get_by_email(payload.email) is not None:
            raise ConflictError("A user with this email already exists", details={"field": "email"})

        user = User(
            name=payload.name,
            email=payload.email,
            password_hash=hash_password(payload.password),
            role=payload.role or Role.USER,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration of the same email.
            self.db.rollback()
            if not is_unique_violation(exc):
                raise
            raise ConflictError("Email is already in use", details={"field": "email"}) from exc

        self.db.refresh(user)
        logger.info("Registered user id=%s role=%s", user.id, user.role.value)
        return user

    def login(self, email: str, password: str) -> LoginResult:
        user = self._get_by_email(email.lower())

        # Same message for every failure so callers cannot tell which emails exist.
        if user is None or not user.is_active:
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not verify_password(password, user.password_hash):
            raise AuthenticationError(INVALID_CREDENTIALS)

        return LoginResult(user=user, tokens=self.tokens.issue_token_pair(user))

    def refresh(self, refresh_token: str) -> TokenPair:
        try:
            claims = self.tokens.verify(refresh_token, TokenKind.REFRESH)
        except InvalidTokenError as exc:
            raise AuthenticationError("Invalid or expired refresh token") from exc

        user = self.db.get(User, claims["id"])
        if user is None or not user.is_active:
            raise AuthenticationError("User not found or inactive")

        # Rotate both tokens. Previously issued refresh tokens stay valid until expiry.
        return self.tokens.issue_token_pair(user)

    def get_by_id(self, user_id: str) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not user.is_active:
            raise AuthenticationError("Account disabled")
        return user
