from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from library_api.api.deps import get_category_service, require_roles
from library_api.api.rate_limit import CREATE, rate_limiter
from library_api.core.audit import schedule_audit
from library_api.models.user import Role, User
from library_api.schemas.categories import (
    CategoryCreateIn,
    CategoryData,
    CategoryListData,
    CategoryUpdateIn,
)
from library_api.schemas.common import ApiResponse
from library_api.services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])

admin_only = require_roles(Role.ADMIN)


@router.get("", response_model=ApiResponse[CategoryListData])
def list_categories(categories: CategoryService = Depends(get_category_service)):
    items = categories.list_all()
    return ApiResponse(
        message="Categories retrieved successfully",
        data=CategoryListData(categories=items, total=len(items)),
    )


@router.get("/{category_id}", response_model=ApiResponse[CategoryData])
def get_category(category_id: str, categories: CategoryService = Depends(get_category_service)):
    return ApiResponse(
        message="Category retrieved successfully",
        data=CategoryData(category=categories.get(category_id)),
    )


@router.post(
    "",
    response_model=ApiResponse[CategoryData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limiter(CREATE))],
)
def create_category(
    payload: CategoryCreateIn,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(admin_only),
    categories: CategoryService = Depends(get_category_service),
):
    category = categories.create(payload)
    schedule_audit(
        background_tasks, request, "CREATE", "category", user=user, resource_id=category.id,
        data=payload.model_dump(mode="json", by_alias=True),
    )
    return ApiResponse(message="Category created successfully", data=CategoryData(category=category))


@router.put("/{category_id}", response_model=ApiResponse[CategoryData])
def update_category(
    category_id: str,
    payload: CategoryUpdateIn,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(admin_only),
    categories: CategoryService = Depends(get_category_service),
):
    category = categories.update(category_id, payload)
    schedule_audit(
        background_tasks, request, "UPDATE", "category", user=user, resource_id=category_id,
        data=payload.model_dump(mode="json", by_alias=True, exclude_unset=True),
    )
    return ApiResponse(message="Category updated successfully", data=CategoryData(category=category))


@router.delete("/{category_id}", response_model=ApiResponse[None])
def delete_category(
    category_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(admin_only),
    categories: CategoryService = Depends(get_category_service),
):
    categories.delete(category_id)
    schedule_audit(background_tasks, request, "DELETE", "category", user=user, resource_id=category_id)
    return ApiResponse(message="Category deleted successfully", data=None)
