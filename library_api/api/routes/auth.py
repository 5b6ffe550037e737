from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from library_api.api.deps import get_auth_service, get_current_user
from library_api.api.rate_limit import AUTH, rate_limiter
from library_api.core.audit import schedule_audit
from library_api.core.tokens import TokenPair
from library_api.models.user import User
from library_api.schemas.auth import (
    LoginData,
    LoginIn,
    LogoutData,
    RefreshTokenIn,
    RegisterIn,
    TokensData,
    TokensOut,
    UserData,
    UserOut,
    VerifyTokenData,
)
from library_api.schemas.common import ApiResponse
from library_api.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def _tokens_out(pair: TokenPair) -> TokensOut:
    return TokensOut(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


@router.post(
    "/register",
    response_model=ApiResponse[UserData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limiter(AUTH))],
)
def register(
    payload: RegisterIn,
    request: Request,
    background_tasks: BackgroundTasks,
    auth_service: AuthService = Depends(get_auth_service),
):
    user = auth_service.register(payload)
    schedule_audit(
        background_tasks,
        request,
        "REGISTER",
        "user",
        user=user,
        resource_id=user.id,
        data=payload.model_dump(mode="json", by_alias=True),
    )
    return ApiResponse(
        message="User registered successfully",
        data=UserData(user=UserOut.model_validate(user)),
    )


@router.post(
    "/login",
    response_model=ApiResponse[LoginData],
    dependencies=[Depends(rate_limiter(AUTH))],
)
def login(payload: LoginIn, auth_service: AuthService = Depends(get_auth_service)):
    result = auth_service.login(payload.email, payload.password)
    return ApiResponse(
        message="Login successful",
        data=LoginData(user=UserOut.model_validate(result.user), tokens=_tokens_out(result.tokens)),
    )


@router.post(
    "/refresh-token",
    response_model=ApiResponse[TokensData],
    dependencies=[Depends(rate_limiter(AUTH))],
)
def refresh_token(payload: RefreshTokenIn, auth_service: AuthService = Depends(get_auth_service)):
    pair = auth_service.refresh(payload.refresh_token)
    return ApiResponse(message="Token refreshed successfully", data=TokensData(tokens=_tokens_out(pair)))


@router.get("/me", response_model=ApiResponse[UserData])
def me(user: User = Depends(get_current_user)):
    return ApiResponse(message="Profile retrieved successfully", data=UserData(user=UserOut.model_validate(user)))


@router.get("/verify-token", response_model=ApiResponse[VerifyTokenData])
def verify_token(user: User = Depends(get_current_user)):
    return ApiResponse(
        message="Token is valid",
        data=VerifyTokenData(user=UserOut.model_validate(user), token_valid=True),
    )


@router.post("/logout", response_model=ApiResponse[LogoutData])
def logout(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client completes logout by discarding them.
    return ApiResponse(
        message="Logout successful",
        data=LogoutData(message="Discard the tokens on the client to complete logout"),
    )
