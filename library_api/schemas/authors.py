from __future__ import annotations

from datetime import date, datetime

from library_api.models.book import BookStatus
from library_api.schemas.common import CamelModel
from pydantic import Field, field_validator


class _AuthorFields(CamelModel):
    @field_validator("birth_date", check_fields=False)
    @classmethod
    def birth_date_not_in_future(cls, v: date | None) -> date | None:
        if v is not None and v > date.today():
            raise ValueError("Birth date cannot be in the future")
        return v


class AuthorCreateIn(_AuthorFields):
    name: str = Field(min_length=2, max_length=100)
    biography: str | None = Field(default=None, max_length=1000)
    birth_date: date | None = None
    nationality: str | None = Field(default=None, min_length=2, max_length=50)


class AuthorUpdateIn(_AuthorFields):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    biography: str | None = Field(default=None, max_length=1000)
    birth_date: date | None = None
    nationality: str | None = Field(default=None, min_length=2, max_length=50)


class AuthorCategoryOut(CamelModel):
    id: str
    name: str


class AuthorBookOut(CamelModel):
    id: str
    title: str
    isbn: str | None
    published_year: int | None
    status: BookStatus
    available_copies: int
    category: AuthorCategoryOut


class AuthorOut(CamelModel):
    id: str
    name: str
    biography: str | None
    birth_date: date | None
    nationality: str | None
    books_count: int
    created_at: datetime
    updated_at: datetime


class AuthorDetailOut(AuthorOut):
    books: list[AuthorBookOut] = Field(default_factory=list)


class AuthorData(CamelModel):
    author: AuthorDetailOut | AuthorOut


class AuthorListData(CamelModel):
    authors: list[AuthorOut]
    total: int
