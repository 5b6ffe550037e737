from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from library_api.models.book import BookStatus
from library_api.models.loan import LoanStatus
from library_api.models.reservation import ReservationStatus
from library_api.schemas.common import CamelModel, PaginationOut
from pydantic import Field, field_validator

ISBN_PATTERN = r"^(?:\d{10}|\d{13})$"

BookSortField = Literal["title", "createdAt", "publishedYear", "pages"]
SortOrder = Literal["asc", "desc"]


def _check_published_year(v: int | None) -> int | None:
    if v is not None and v > date.today().year:
        raise ValueError(f"Published year cannot be greater than {date.today().year}")
    return v


def _check_author_ids(v: list[str] | None) -> list[str] | None:
    if v is None:
        return v
    # Keep caller order, drop repeats so the association insert stays unique.
    return list(dict.fromkeys(v))


class BookCreateIn(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    isbn: str | None = Field(default=None, pattern=ISBN_PATTERN)
    description: str | None = Field(default=None, max_length=1000)
    published_year: int | None = Field(default=None, ge=1000)
    total_copies: int = Field(default=1, ge=1)
    language: str = Field(default="pt-BR", min_length=2, max_length=10)
    pages: int | None = Field(default=None, ge=1)
    category_id: str = Field(min_length=1)
    authors: list[str] = Field(min_length=1)

    published_year_not_in_future = field_validator("published_year")(_check_published_year)
    unique_author_ids = field_validator("authors")(_check_author_ids)


class BookUpdateIn(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    isbn: str | None = Field(default=None, pattern=ISBN_PATTERN)
    description: str | None = Field(default=None, max_length=1000)
    published_year: int | None = Field(default=None, ge=1000)
    total_copies: int | None = Field(default=None, ge=1)
    available_copies: int | None = Field(default=None, ge=0)
    language: str | None = Field(default=None, min_length=2, max_length=10)
    pages: int | None = Field(default=None, ge=1)
    status: BookStatus | None = None
    category_id: str | None = Field(default=None, min_length=1)
    authors: list[str] | None = Field(default=None, min_length=1)

    published_year_not_in_future = field_validator("published_year")(_check_published_year)
    unique_author_ids = field_validator("authors")(_check_author_ids)


class BookCategoryOut(CamelModel):
    id: str
    name: str


class BookAuthorOut(CamelModel):
    id: str
    name: str
    biography: str | None


class BorrowerOut(CamelModel):
    id: str
    name: str
    email: str


class ActiveLoanOut(CamelModel):
    id: str
    status: LoanStatus
    loaned_at: datetime
    due_date: datetime
    user: BorrowerOut


class ActiveReservationOut(CamelModel):
    id: str
    status: ReservationStatus
    reserved_at: datetime
    expires_at: datetime | None
    user: BorrowerOut


class BookOut(CamelModel):
    id: str
    title: str
    isbn: str | None
    description: str | None
    published_year: int | None
    total_copies: int
    available_copies: int
    language: str
    pages: int | None
    status: BookStatus
    created_at: datetime
    updated_at: datetime
    category: BookCategoryOut
    authors: list[BookAuthorOut]


class BookDetailOut(BookOut):
    active_loans: list[ActiveLoanOut] = Field(default_factory=list)
    active_reservations: list[ActiveReservationOut] = Field(default_factory=list)


class BookData(CamelModel):
    book: BookDetailOut | BookOut


class BookListData(CamelModel):
    books: list[BookOut]
    pagination: PaginationOut
