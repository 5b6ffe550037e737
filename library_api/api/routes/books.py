from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from library_api.api.deps import get_book_service, require_roles
from library_api.api.rate_limit import CREATE, SEARCH, rate_limiter
from library_api.core.audit import schedule_audit
from library_api.models.book import BookStatus
from library_api.models.user import Role, User
from library_api.schemas.books import (
    BookCreateIn,
    BookData,
    BookListData,
    BookSortField,
    BookUpdateIn,
    SortOrder,
)
from library_api.schemas.common import ApiResponse
from library_api.services.book_service import BookFilters, BookService

router = APIRouter(prefix="/books", tags=["books"])

search_limit = Depends(rate_limiter(SEARCH))


def book_filters(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = Query(default=None, min_length=1),
    category_filter: Optional[str] = Query(default=None, alias="categoryId"),
    author_filter: Optional[str] = Query(default=None, alias="authorId"),
    book_status: Optional[BookStatus] = Query(default=None, alias="status"),
    language: Optional[str] = Query(default=None),
    sort_by: BookSortField = Query(default="createdAt", alias="sortBy"),
    sort_order: SortOrder = Query(default="desc", alias="sortOrder"),
) -> BookFilters:
    return BookFilters(
        page=page,
        limit=limit,
        search=search,
        category_id=category_filter,
        author_id=author_filter,
        status=book_status,
        language=language,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("", response_model=ApiResponse[BookListData], dependencies=[search_limit])
def list_books(
    filters: BookFilters = Depends(book_filters),
    books: BookService = Depends(get_book_service),
):
    return ApiResponse(message="Books retrieved successfully", data=books.list_books(filters))


@router.get("/search", response_model=ApiResponse[BookListData], dependencies=[search_limit])
def search_books(
    q: Optional[str] = Query(default=None, min_length=1),
    filters: BookFilters = Depends(book_filters),
    books: BookService = Depends(get_book_service),
):
    if q:
        filters.search = q
    result = books.list_books(filters)
    return ApiResponse(message=f"Found {result.pagination.total} books", data=result)


@router.get(
    "/category/{category_id}",
    response_model=ApiResponse[BookListData],
    dependencies=[search_limit],
)
def list_books_by_category(
    category_id: str,
    filters: BookFilters = Depends(book_filters),
    books: BookService = Depends(get_book_service),
):
    filters.category_id = category_id
    return ApiResponse(message="Category books retrieved successfully", data=books.list_books(filters))


@router.get(
    "/author/{author_id}",
    response_model=ApiResponse[BookListData],
    dependencies=[search_limit],
)
def list_books_by_author(
    author_id: str,
    filters: BookFilters = Depends(book_filters),
    books: BookService = Depends(get_book_service),
):
    filters.author_id = author_id
    return ApiResponse(message="Author books retrieved successfully", data=books.list_books(filters))


@router.get("/{book_id}", response_model=ApiResponse[BookData])
def get_book(book_id: str, books: BookService = Depends(get_book_service)):
    return ApiResponse(message="Book retrieved successfully", data=BookData(book=books.get(book_id)))


@router.post(
    "",
    response_model=ApiResponse[BookData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limiter(CREATE))],
)
def create_book(
    payload: BookCreateIn,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_roles(Role.ADMIN, Role.LIBRARIAN)),
    books: BookService = Depends(get_book_service),
):
    book = books.create(payload)
    schedule_audit(
        background_tasks, request, "CREATE", "book", user=user, resource_id=book.id,
        data=payload.model_dump(mode="json", by_alias=True),
    )
    return ApiResponse(message="Book created successfully", data=BookData(book=book))


@router.put("/{book_id}", response_model=ApiResponse[BookData])
def update_book(
    book_id: str,
    payload: BookUpdateIn,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_roles(Role.ADMIN, Role.LIBRARIAN)),
    books: BookService = Depends(get_book_service),
):
    book = books.update(book_id, payload)
    schedule_audit(
        background_tasks, request, "UPDATE", "book", user=user, resource_id=book_id,
        data=payload.model_dump(mode="json", by_alias=True, exclude_unset=True),
    )
    return ApiResponse(message="Book updated successfully", data=BookData(book=book))


@router.delete("/{book_id}", response_model=ApiResponse[None])
def delete_book(
    book_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_roles(Role.ADMIN)),
    books: BookService = Depends(get_book_service),
):
    books.delete(book_id)
    schedule_audit(background_tasks, request, "DELETE", "book", user=user, resource_id=book_id)
    return ApiResponse(message="Book deleted successfully", data=None)
