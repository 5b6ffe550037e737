from __future__ import annotations

from functools import lru_cache

from library_api.core.config import settings
from passlib.context import CryptContext  # type: ignore[import-untyped]


@lru_cache
def get_pwd_context() -> CryptContext:
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=settings.password_hash_rounds,
    )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return get_pwd_context().verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # Unknown or corrupt hash format.
        return False


def hash_password(password: str) -> str:
    return get_pwd_context().hash(password)
