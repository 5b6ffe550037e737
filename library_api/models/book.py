from __future__ import annotations

import enum
from datetime import datetime
from uuid import uuid4

from library_api.models.base import Base, utcnow
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship


class BookStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"
    MAINTENANCE = "MAINTENANCE"


# Pure association; rows are replaced wholesale when a book's authors change.
book_authors = Table(
    "book_authors",
    Base.metadata,
    Column("book_id", String(36), ForeignKey("books.id", ondelete="CASCADE"), primary_key=True),
    Column("author_id", String(36), ForeignKey("authors.id", ondelete="RESTRICT"), primary_key=True),
)


class Book(Base):
    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    title: Mapped[str] = mapped_column(String(200), index=True, nullable=False)
    isbn: Mapped[str | None] = mapped_column(String(13), unique=True, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    published_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    total_copies: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    available_copies: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    language: Mapped[str] = mapped_column(String(10), default="pt-BR", nullable=False)
    pages: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[BookStatus] = mapped_column(
        Enum(BookStatus, name="book_status", native_enum=False, length=20),
        default=BookStatus.AVAILABLE,
        index=True,
        nullable=False,
    )

    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("categories.id", ondelete="RESTRICT"), index=True, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    category = relationship("Category", back_populates="books")
    authors = relationship("Author", secondary=book_authors, back_populates="books")
    loans = relationship("Loan", back_populates="book", passive_deletes="all")
    reservations = relationship("Reservation", back_populates="book", passive_deletes="all")

    __table_args__ = (
        CheckConstraint("available_copies >= 0", name="ck_books_available_copies_non_negative"),
        CheckConstraint("available_copies <= total_copies", name="ck_books_available_le_total"),
    )
