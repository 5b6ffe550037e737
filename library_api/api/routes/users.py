from __future__ import annotations

from fastapi import APIRouter, Depends
from library_api.api.deps import get_user_service, ownership_check
from library_api.models.user import User
from library_api.schemas.auth import UserData, UserOut
from library_api.schemas.common import ApiResponse
from library_api.schemas.users import LoanListData
from library_api.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}", response_model=ApiResponse[UserData])
def get_user(
    user_id: str,
    _: User = Depends(ownership_check("user_id")),
    users: UserService = Depends(get_user_service),
):
    user = users.get_profile(user_id)
    return ApiResponse(message="User retrieved successfully", data=UserData(user=UserOut.model_validate(user)))


@router.get("/{user_id}/loans", response_model=ApiResponse[LoanListData])
def list_user_loans(
    user_id: str,
    _: User = Depends(ownership_check("user_id")),
    users: UserService = Depends(get_user_service),
):
    loans = users.list_loans(user_id)
    return ApiResponse(
        message="Loans retrieved successfully",
        data=LoanListData(loans=loans, total=len(loans)),
    )
