from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any
from uuid import uuid4

from jose import ExpiredSignatureError, JWTError, jwt  # type: ignore[import-untyped]
from library_api.core.config import settings

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(value: str | int) -> timedelta:
    """Parse ``"7d"``, ``"15m"``, ``"3600"`` style lifetimes into a timedelta."""
    if isinstance(value, int):
        return timedelta(seconds=value)
    m = _DURATION_RE.match(value)
    if m is None:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = m.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


class TokenKind(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class InvalidTokenError(Exception):
    def __init__(self, kind: TokenKind, *, expired: bool = False) -> None:
        super().__init__(f"Invalid or expired {kind.value} token")
        self.kind = kind
        self.expired = expired


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: str


class TokenIssuer:
    """Mints and verifies the access/refresh JWT pair.

    Each kind is signed with its own secret, so one kind never verifies as
    the other.
    """

    def __init__(
        self,
        *,
        access_secret: str,
        refresh_secret: str,
        access_expires_in: str = "7d",
        refresh_expires_in: str = "30d",
        algorithm: str = "HS256",
        issuer: str = "library-api",
        audience: str = "library-users",
    ) -> None:
        if not access_secret or not refresh_secret:
            raise RuntimeError("JWT secrets must be defined in environment variables")
        if access_secret == refresh_secret:
            raise RuntimeError("Access and refresh tokens must use different secrets")

        self._secrets = {TokenKind.ACCESS: access_secret, TokenKind.REFRESH: refresh_secret}
        self._ttls = {
            TokenKind.ACCESS: parse_duration(access_expires_in),
            TokenKind.REFRESH: parse_duration(refresh_expires_in),
        }
        self.access_expires_in = access_expires_in
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience

    def _encode(self, kind: TokenKind, claims: dict[str, Any]) -> str:
        now = datetime.now(timezone.utc)
        to_encode = {
            **claims,
            "iat": now,
            "exp": now + self._ttls[kind],
            "iss": self.issuer,
            "aud": self.audience,
            "jti": uuid4().hex,
        }
        return jwt.encode(to_encode, self._secrets[kind], algorithm=self.algorithm)

    def issue_access_token(self, claims: dict[str, Any]) -> str:
        return self._encode(
            TokenKind.ACCESS,
            {"id": claims["id"], "email": claims["email"], "role": claims["role"]},
        )

    def issue_refresh_token(self, claims: dict[str, Any]) -> str:
        return self._encode(TokenKind.REFRESH, {"id": claims["id"]})

    def verify(self, token: str, kind: TokenKind) -> dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
            )
        except ExpiredSignatureError as exc:
            raise InvalidTokenError(kind, expired=True) from exc
        except JWTError as exc:
            raise InvalidTokenError(kind) from exc

        if not payload.get("id"):
            raise InvalidTokenError(kind)
        return payload

    def issue_token_pair(self, user: Any) -> TokenPair:
        role = getattr(user.role, "value", user.role)
        claims = {"id": user.id, "email": user.email, "role": role}
        return TokenPair(
            access_token=self.issue_access_token(claims),
            refresh_token=self.issue_refresh_token(claims),
            expires_in=self.access_expires_in,
        )


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(
        access_secret=settings.jwt_secret,
        refresh_secret=settings.jwt_refresh_secret,
        access_expires_in=settings.jwt_expires_in,
        refresh_expires_in=settings.jwt_refresh_expires_in,
        algorithm=settings.jwt_algorithm,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
    )
