from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from library_api.core.errors import ConflictError, NotFoundError, ValidationError
from library_api.db.session import is_unique_violation
from library_api.models.author import Author
from library_api.models.book import Book, BookStatus
from library_api.models.category import Category
from library_api.models.loan import OPEN_LOAN_STATUSES, Loan
from library_api.models.reservation import Reservation, ReservationStatus
from library_api.schemas.books import (
    ActiveLoanOut,
    ActiveReservationOut,
    BookCreateIn,
    BookDetailOut,
    BookListData,
    BookOut,
    BookUpdateIn,
)
from library_api.schemas.common import PaginationOut
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

SORT_COLUMNS = {
    "title": Book.title,
    "createdAt": Book.created_at,
    "publishedYear": Book.published_year,
    "pages": Book.pages,
}


@dataclass
class BookFilters:
    page: int = 1
    limit: int = 10
    search: str | None = None
    category_id: str | None = None
    author_id: str | None = None
    status: BookStatus | None = None
    language: str | None = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"


class BookService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _get(self, book_id: str) -> Book:
        book = self.db.get(Book, book_id)
        if book is None:
            raise NotFoundError("Book not found")
        return book

    def _require_category(self, category_id: str) -> Category:
        category = self.db.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def _require_authors(self, author_ids: list[str]) -> list[Author]:
        found = self.db.execute(select(Author).where(Author.id.in_(author_ids))).scalars().all()
        if len(found) != len(author_ids):
            raise NotFoundError("One or more authors were not found")
        by_id = {a.id: a for a in found}
        return [by_id[author_id] for author_id in author_ids]

    def _ensure_isbn_free(self, isbn: str) -> None:
        taken = self.db.execute(select(Book.id).where(Book.isbn == isbn)).scalar_one_or_none()
        if taken is not None:
            raise ConflictError("ISBN is already in use", details={"field": "isbn"})

    def _commit_unique_isbn(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if not is_unique_violation(exc):
                raise
            raise ConflictError("ISBN is already in use", details={"field": "isbn"}) from exc

    def create(self, payload: BookCreateIn) -> BookOut:
        data = payload.model_dump(exclude={"authors", "category_id"})

        self._require_category(payload.category_id)
        authors = self._require_authors(payload.authors)
        if payload.isbn:
            self._ensure_isbn_free(payload.isbn)

        book = Book(
            **data,
            category_id=payload.category_id,
            available_copies=payload.total_copies,
            authors=authors,
        )
        self.db.add(book)
        self._commit_unique_isbn()
        self.db.refresh(book)
        return BookOut.model_validate(book)

    def _conditions(self, filters: BookFilters) -> list[Any]:
        conditions: list[Any] = []
        if filters.search:
            pattern = f"%{filters.search}%"
            conditions.append(
                or_(
                    Book.title.ilike(pattern),
                    Book.description.ilike(pattern),
                    Book.isbn.contains(filters.search),
                )
            )
        if filters.category_id:
            conditions.append(Book.category_id == filters.category_id)
        if filters.status:
            conditions.append(Book.status == filters.status)
        if filters.language:
            conditions.append(Book.language == filters.language)
        if filters.author_id:
            conditions.append(Book.authors.any(Author.id == filters.author_id))
        return conditions

    def list_books(self, filters: BookFilters) -> BookListData:
        conditions = self._conditions(filters)

        column = SORT_COLUMNS.get(filters.sort_by, Book.created_at)
        if filters.sort_order == "asc":
            order_by = (column.asc(), Book.id.asc())
        else:
            order_by = (column.desc(), Book.id.desc())

        total = self.db.execute(
            select(func.count()).select_from(Book).where(*conditions)
        ).scalar_one()
        books = (
            self.db.execute(
                select(Book)
                .where(*conditions)
                .options(selectinload(Book.category), selectinload(Book.authors))
                .order_by(*order_by)
                .offset((filters.page - 1) * filters.limit)
                .limit(filters.limit)
            )
            .scalars()
            .all()
        )

        return BookListData(
            books=[BookOut.model_validate(b) for b in books],
            pagination=PaginationOut.build(page=filters.page, limit=filters.limit, total=total),
        )

    def get(self, book_id: str) -> BookDetailOut:
        book = self._get(book_id)

        loans = (
            self.db.execute(
                select(Loan)
                .where(Loan.book_id == book.id, Loan.status.in_(OPEN_LOAN_STATUSES))
                .options(selectinload(Loan.user))
                .order_by(Loan.loaned_at.asc())
            )
            .scalars()
            .all()
        )
        reservations = (
            self.db.execute(
                select(Reservation)
                .where(
                    Reservation.book_id == book.id,
                    Reservation.status == ReservationStatus.ACTIVE,
                )
                .options(selectinload(Reservation.user))
                .order_by(Reservation.reserved_at.asc())
            )
            .scalars()
            .all()
        )

        out = BookOut.model_validate(book)
        return BookDetailOut(
            **out.model_dump(),
            active_loans=[ActiveLoanOut.model_validate(loan) for loan in loans],
            active_reservations=[ActiveReservationOut.model_validate(r) for r in reservations],
        )

    def update(self, book_id: str, payload: BookUpdateIn) -> BookOut:
        book = self._get(book_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        author_ids = changes.pop("authors", None)

        if "category_id" in changes:
            self._require_category(changes["category_id"])
        authors = self._require_authors(author_ids) if author_ids else None
        if changes.get("isbn") and changes["isbn"] != book.isbn:
            self._ensure_isbn_free(changes["isbn"])

        total = changes.get("total_copies", book.total_copies)
        available = changes.get("available_copies", book.available_copies)
        if available > total:
            raise ValidationError("Available copies cannot be greater than total copies")

        for key, value in changes.items():
            setattr(book, key, value)
        if authors is not None:
            # Association rows are deleted and recreated in the same commit.
            book.authors = authors

        self._commit_unique_isbn()
        self.db.refresh(book)
        return BookOut.model_validate(book)

    def delete(self, book_id: str) -> None:
        book = self._get(book_id)

        open_loans = self.db.execute(
            select(func.count(Loan.id)).where(
                Loan.book_id == book.id, Loan.status.in_(OPEN_LOAN_STATUSES)
            )
        ).scalar_one()
        if open_loans > 0:
            raise ValidationError("Cannot delete a book with active loans")

        active_reservations = self.db.execute(
            select(func.count(Reservation.id)).where(
                Reservation.book_id == book.id,
                Reservation.status == ReservationStatus.ACTIVE,
            )
        ).scalar_one()
        if active_reservations > 0:
            raise ValidationError("Cannot delete a book with active reservations")

        self.db.delete(book)
        self.db.commit()
