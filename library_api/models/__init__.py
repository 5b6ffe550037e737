from library_api.models.author import Author
from library_api.models.base import Base
from library_api.models.book import Book, BookStatus, book_authors
from library_api.models.category import Category
from library_api.models.loan import Loan, LoanStatus
from library_api.models.reservation import Reservation, ReservationStatus
from library_api.models.user import Role, User


__all__ = [
    "Base",
    "User",
    "Role",
    "Category",
    "Author",
    "Book",
    "BookStatus",
    "book_authors",
    "Loan",
    "LoanStatus",
    "Reservation",
    "ReservationStatus",
]
