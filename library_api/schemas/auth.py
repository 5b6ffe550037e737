from __future__ import annotations

from datetime import datetime

from library_api.models.user import Role
from library_api.schemas.common import CamelModel
from pydantic import EmailStr, Field, field_validator


class RegisterIn(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    role: Role = Role.USER

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must have at least 2 characters")
        return v

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def password_must_fit_bcrypt_limit(cls, v: str) -> str:
        if len(v.encode("utf-8")) > 72:
            raise ValueError("Password must be 72 bytes or fewer when UTF-8 encoded.")
        return v


class LoginIn(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class RefreshTokenIn(CamelModel):
    refresh_token: str = Field(min_length=1)


class UserOut(CamelModel):
    id: str
    name: str
    email: EmailStr
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None


class TokensOut(CamelModel):
    access_token: str
    refresh_token: str
    expires_in: str


class UserData(CamelModel):
    user: UserOut


class LoginData(CamelModel):
    user: UserOut
    tokens: TokensOut


class TokensData(CamelModel):
    tokens: TokensOut


class VerifyTokenData(CamelModel):
    user: UserOut
    token_valid: bool = True


class LogoutData(CamelModel):
    message: str
