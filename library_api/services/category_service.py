from __future__ import annotations

from library_api.core.errors import ConflictError, NotFoundError, ValidationError
from library_api.db.session import is_unique_violation
from library_api.models.book import Book
from library_api.models.category import Category
from library_api.schemas.categories import (
    CategoryBookOut,
    CategoryCreateIn,
    CategoryDetailOut,
    CategoryOut,
    CategoryUpdateIn,
)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

RECENT_BOOKS_LIMIT = 5


class CategoryService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _get(self, category_id: str) -> Category:
        category = self.db.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def _get_by_name(self, name: str) -> Category | None:
        return self.db.execute(select(Category).where(Category.name == name)).scalar_one_or_none()

    def _books_count(self, category_id: str) -> int:
        return self.db.execute(
            select(func.count(Book.id)).where(Book.category_id == category_id)
        ).scalar_one()

    def _to_out(self, category: Category, books_count: int | None = None) -> CategoryOut:
        if books_count is None:
            books_count = self._books_count(category.id)
        return CategoryOut(
            id=category.id,
            name=category.name,
            description=category.description,
            books_count=books_count,
            created_at=category.created_at,
            updated_at=category.updated_at,
        )

    def _commit_unique_name(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if not is_unique_violation(exc):
                raise
            raise ConflictError("Category name is already in use", details={"field": "name"}) from exc

    def create(self, payload: CategoryCreateIn) -> CategoryOut:
        if self._get_by_name(payload.name) is not None:
            raise ConflictError("A category with this name already exists", details={"field": "name"})

        category = Category(name=payload.name, description=payload.description)
        self.db.add(category)
        self._commit_unique_name()
        self.db.refresh(category)
        return self._to_out(category, books_count=0)

    def list_all(self) -> list[CategoryOut]:
        counts = (
            select(Book.category_id, func.count(Book.id).label("books_count"))
            .group_by(Book.category_id)
            .subquery()
        )
        rows = self.db.execute(
            select(Category, func.coalesce(counts.c.books_count, 0))
            .outerjoin(counts, counts.c.category_id == Category.id)
            .order_by(Category.name.asc())
        ).all()
        return [self._to_out(category, books_count=count) for category, count in rows]

    def get(self, category_id: str) -> CategoryDetailOut:
        category = self._get(category_id)
        recent = (
            self.db.execute(
                select(Book)
                .where(Book.category_id == category.id)
                .order_by(Book.created_at.desc(), Book.id.desc())
                .limit(RECENT_BOOKS_LIMIT)
            )
            .scalars()
            .all()
        )
        out = self._to_out(category)
        return CategoryDetailOut(
            **out.model_dump(),
            recent_books=[CategoryBookOut.model_validate(b) for b in recent],
        )

    def update(self, category_id: str, payload: CategoryUpdateIn) -> CategoryOut:
        category = self._get(category_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)

        new_name = changes.get("name")
        if new_name and new_name != category.name and self._get_by_name(new_name) is not None:
            raise ConflictError("Category name is already in use", details={"field": "name"})

        for key, value in changes.items():
            setattr(category, key, value)
        self._commit_unique_name()
        self.db.refresh(category)
        return self._to_out(category)

    def delete(self, category_id: str) -> None:
        category = self._get(category_id)
        if self._books_count(category.id) > 0:
            raise ValidationError("Cannot delete a category that has associated books")

        self.db.delete(category)
        self.db.commit()
