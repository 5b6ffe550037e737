from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, Request
from library_api.core.errors import AppError, AuthenticationError, AuthorizationError
from library_api.core.tokens import InvalidTokenError, TokenIssuer, TokenKind, get_token_issuer
from library_api.db.session import get_db
from library_api.models.user import Role, User
from library_api.services.auth_service import AuthService
from library_api.services.author_service import AuthorService
from library_api.services.book_service import BookService
from library_api.services.category_service import CategoryService
from library_api.services.user_service import UserService
from sqlalchemy.orm import Session


def get_auth_service(
    db: Session = Depends(get_db),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> AuthService:
    return AuthService(db, tokens)


def get_book_service(db: Session = Depends(get_db)) -> BookService:
    return BookService(db)


def get_author_service(db: Session = Depends(get_db)) -> AuthorService:
    return AuthorService(db)


def get_category_service(db: Session = Depends(get_db)) -> CategoryService:
    return CategoryService(db)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


def _extract_bearer_token(request: Request) -> str:
    auth = request.headers.get("Authorization")
    if not auth:
        raise AuthenticationError("Access token not provided")
    parts = auth.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise AuthenticationError("Invalid token format. Use: Bearer <token>")
    return parts[1]


def _authenticate(request: Request, auth_service: AuthService) -> User:
    token = _extract_bearer_token(request)
    try:
        claims = auth_service.tokens.verify(token, TokenKind.ACCESS)
    except InvalidTokenError as exc:
        raise AuthenticationError("Invalid or expired token") from exc

    # Reload on every request so deactivation takes effect before token expiry.
    user = auth_service.get_by_id(claims["id"])
    request.state.user = user
    return user


def get_current_user(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    return _authenticate(request, auth_service)


def get_optional_user(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[User]:
    cached = getattr(request.state, "user", None)
    if cached is not None:
        return cached
    try:
        return _authenticate(request, auth_service)
    except AppError:
        # Public endpoints personalize when they can and otherwise carry on anonymously.
        return None


def require_roles(*allowed: Role) -> Callable[..., User]:
    """Dependency that admits only authenticated users holding one of ``allowed``."""
    allowed_roles = frozenset(allowed)

    def _dep(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed_roles:
            raise AuthorizationError("Access denied. Insufficient permissions")
        return user

    return _dep


def ownership_check(param_name: str = "user_id") -> Callable[..., User]:
    """Dependency restricting a route to the user named by a path parameter, or an ADMIN."""

    def _dep(request: Request, user: User = Depends(get_current_user)) -> User:
        if user.role == Role.ADMIN:
            return user
        if request.path_params.get(param_name) != user.id:
            raise AuthorizationError("Access denied. You can only access your own data")
        return user

    return _dep
