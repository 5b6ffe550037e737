from __future__ import annotations

from library_api.core.errors import NotFoundError, ValidationError
from library_api.models.author import Author
from library_api.models.book import Book, book_authors
from library_api.schemas.authors import (
    AuthorBookOut,
    AuthorCreateIn,
    AuthorDetailOut,
    AuthorOut,
    AuthorUpdateIn,
)
from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session, selectinload

AUTHOR_BOOKS_LIMIT = 10


class AuthorService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _get(self, author_id: str) -> Author:
        author = self.db.get(Author, author_id)
        if author is None:
            raise NotFoundError("Author not found")
        return author

    def _books_count(self, author_id: str) -> int:
        return self.db.execute(
            select(func.count()).select_from(book_authors).where(book_authors.c.author_id == author_id)
        ).scalar_one()

    def _to_out(self, author: Author, books_count: int | None = None) -> AuthorOut:
        if books_count is None:
            books_count = self._books_count(author.id)
        return AuthorOut(
            id=author.id,
            name=author.name,
            biography=author.biography,
            birth_date=author.birth_date,
            nationality=author.nationality,
            books_count=books_count,
            created_at=author.created_at,
            updated_at=author.updated_at,
        )

    def _with_counts(self) -> Select:
        counts = (
            select(book_authors.c.author_id, func.count(book_authors.c.book_id).label("books_count"))
            .group_by(book_authors.c.author_id)
            .subquery()
        )
        return select(Author, func.coalesce(counts.c.books_count, 0)).outerjoin(
            counts, counts.c.author_id == Author.id
        )

    def create(self, payload: AuthorCreateIn) -> AuthorOut:
        author = Author(**payload.model_dump())
        self.db.add(author)
        self.db.commit()
        self.db.refresh(author)
        return self._to_out(author, books_count=0)

    def list_all(self) -> list[AuthorOut]:
        rows = self.db.execute(self._with_counts().order_by(Author.name.asc())).all()
        return [self._to_out(author, books_count=count) for author, count in rows]

    def search(self, term: str) -> list[AuthorOut]:
        pattern = f"%{term}%"
        stmt = (
            self._with_counts()
            .where(
                or_(
                    Author.name.ilike(pattern),
                    Author.biography.ilike(pattern),
                    Author.nationality.ilike(pattern),
                )
            )
            .order_by(Author.name.asc())
        )
        return [self._to_out(author, books_count=count) for author, count in self.db.execute(stmt).all()]

    def get(self, author_id: str) -> AuthorDetailOut:
        author = self._get(author_id)
        books = (
            self.db.execute(
                select(Book)
                .join(book_authors, book_authors.c.book_id == Book.id)
                .where(book_authors.c.author_id == author.id)
                .options(selectinload(Book.category))
                .order_by(Book.created_at.desc(), Book.id.desc())
                .limit(AUTHOR_BOOKS_LIMIT)
            )
            .scalars()
            .all()
        )
        out = self._to_out(author)
        return AuthorDetailOut(
            **out.model_dump(),
            books=[AuthorBookOut.model_validate(b) for b in books],
        )

    def update(self, author_id: str, payload: AuthorUpdateIn) -> AuthorOut:
        author = self._get(author_id)
        for key, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(author, key, value)
        self.db.commit()
        self.db.refresh(author)
        return self._to_out(author)

    def delete(self, author_id: str) -> None:
        author = self._get(author_id)
        if self._books_count(author.id) > 0:
            raise ValidationError("Cannot delete an author that has associated books")

        self.db.delete(author)
        self.db.commit()
