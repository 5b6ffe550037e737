from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from library_api.api.deps import get_author_service, require_roles
from library_api.api.rate_limit import CREATE, SEARCH, rate_limiter
from library_api.core.audit import schedule_audit
from library_api.models.user import Role, User
from library_api.schemas.authors import (
    AuthorCreateIn,
    AuthorData,
    AuthorListData,
    AuthorUpdateIn,
)
from library_api.schemas.common import ApiResponse
from library_api.services.author_service import AuthorService

router = APIRouter(prefix="/authors", tags=["authors"])


@router.get("", response_model=ApiResponse[AuthorListData])
def list_authors(authors: AuthorService = Depends(get_author_service)):
    items = authors.list_all()
    return ApiResponse(
        message="Authors retrieved successfully",
        data=AuthorListData(authors=items, total=len(items)),
    )


@router.get(
    "/search",
    response_model=ApiResponse[AuthorListData],
    dependencies=[Depends(rate_limiter(SEARCH))],
)
def search_authors(
    q: str = Query(min_length=1),
    authors: AuthorService = Depends(get_author_service),
):
    items = authors.search(q)
    return ApiResponse(
        message=f"Found {len(items)} authors",
        data=AuthorListData(authors=items, total=len(items)),
    )


@router.get("/{author_id}", response_model=ApiResponse[AuthorData])
def get_author(author_id: str, authors: AuthorService = Depends(get_author_service)):
    return ApiResponse(
        message="Author retrieved successfully",
        data=AuthorData(author=authors.get(author_id)),
    )


@router.post(
    "",
    response_model=ApiResponse[AuthorData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limiter(CREATE))],
)
def create_author(
    payload: AuthorCreateIn,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_roles(Role.ADMIN, Role.LIBRARIAN)),
    authors: AuthorService = Depends(get_author_service),
):
    author = authors.create(payload)
    schedule_audit(
        background_tasks, request, "CREATE", "author", user=user, resource_id=author.id,
        data=payload.model_dump(mode="json", by_alias=True),
    )
    return ApiResponse(message="Author created successfully", data=AuthorData(author=author))


@router.put("/{author_id}", response_model=ApiResponse[AuthorData])
def update_author(
    author_id: str,
    payload: AuthorUpdateIn,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_roles(Role.ADMIN, Role.LIBRARIAN)),
    authors: AuthorService = Depends(get_author_service),
):
    author = authors.update(author_id, payload)
    schedule_audit(
        background_tasks, request, "UPDATE", "author", user=user, resource_id=author_id,
        data=payload.model_dump(mode="json", by_alias=True, exclude_unset=True),
    )
    return ApiResponse(message="Author updated successfully", data=AuthorData(author=author))


@router.delete("/{author_id}", response_model=ApiResponse[None])
def delete_author(
    author_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_roles(Role.ADMIN)),
    authors: AuthorService = Depends(get_author_service),
):
    authors.delete(author_id)
    schedule_audit(background_tasks, request, "DELETE", "author", user=user, resource_id=author_id)
    return ApiResponse(message="Author deleted successfully", data=None)
