from __future__ import annotations

from datetime import datetime

from library_api.models.book import BookStatus
from library_api.schemas.common import CamelModel
from pydantic import Field


class CategoryCreateIn(CamelModel):
    name: str = Field(min_length=2, max_length=50)
    description: str | None = Field(default=None, max_length=200)


class CategoryUpdateIn(CamelModel):
    name: str | None = Field(default=None, min_length=2, max_length=50)
    description: str | None = Field(default=None, max_length=200)


class CategoryBookOut(CamelModel):
    id: str
    title: str
    status: BookStatus
    available_copies: int


class CategoryOut(CamelModel):
    id: str
    name: str
    description: str | None
    books_count: int
    created_at: datetime
    updated_at: datetime


class CategoryDetailOut(CategoryOut):
    recent_books: list[CategoryBookOut] = Field(default_factory=list)


class CategoryData(CamelModel):
    category: CategoryDetailOut | CategoryOut


class CategoryListData(CamelModel):
    categories: list[CategoryOut]
    total: int
