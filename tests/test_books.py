import logging
from datetime import date, datetime, timedelta, timezone

import pytest
from conftest import API
from library_api.core.errors import ConflictError
from library_api.models import Book, BookStatus, Loan, LoanStatus, Reservation
from library_api.schemas.books import BookUpdateIn
from library_api.services.book_service import BookService
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError


def _count_books(db_session) -> int:
    return db_session.execute(select(func.count(Book.id))).scalar_one()


def _loan(db_session, user, book, status=LoanStatus.ACTIVE):
    loan = Loan(
        user_id=user.id,
        book_id=book.id,
        status=status,
        due_date=datetime.now(timezone.utc) + timedelta(days=14),
    )
    db_session.add(loan)
    db_session.flush()
    return loan


def test_create_book_sets_available_copies(client, librarian_headers, category, authors):
    r = client.post(
        f"{API}/books",
        json={
            "title": "Dom Casmurro",
            "isbn": "9788535910663",
            "totalCopies": 3,
            "publishedYear": 1899,
            "categoryId": category.id,
            "authors": [authors[0].id, authors[1].id, authors[0].id],
        },
        headers=librarian_headers,
    )
    assert r.status_code == 201, r.text

    book = r.json()["data"]["book"]
    assert book["availableCopies"] == 3
    assert book["language"] == "pt-BR"
    assert book["status"] == "AVAILABLE"
    assert book["category"]["name"] == "Fiction"
    assert sorted(a["name"] for a in book["authors"]) == ["Clarice Lispector", "Machado de Assis"]


def test_duplicate_isbn_conflicts_and_creates_nothing(client, admin_headers, make_book, category, authors, db_session):
    make_book(isbn="9788535910663")
    before = _count_books(db_session)

    r = client.post(
        f"{API}/books",
        json={"title": "Copycat", "isbn": "9788535910663", "categoryId": category.id, "authors": [authors[0].id]},
        headers=admin_headers,
    )
    assert r.status_code == 409
    assert r.json()["error"]["message"] == "ISBN is already in use"
    assert _count_books(db_session) == before


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"isbn": "12345"}, "isbn"),
        ({"isbn": "97885359106AB"}, "isbn"),
        ({"publishedYear": date.today().year + 1}, "publishedYear"),
        ({"totalCopies": 0}, "totalCopies"),
        ({"authors": []}, "authors"),
        ({"title": ""}, "title"),
    ],
)
def test_create_book_validation(client, admin_headers, category, authors, overrides, field):
    body = {"title": "Valid", "categoryId": category.id, "authors": [authors[0].id]}
    body.update(overrides)

    r = client.post(f"{API}/books", json=body, headers=admin_headers)
    assert r.status_code == 400, r.text
    fields = {d["field"] for d in r.json()["error"]["details"]}
    assert field in fields


def test_create_book_with_unknown_references(client, admin_headers, category, authors):
    r = client.post(
        f"{API}/books",
        json={"title": "Orphan", "categoryId": "missing", "authors": [authors[0].id]},
        headers=admin_headers,
    )
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "Category not found"

    r = client.post(
        f"{API}/books",
        json={"title": "Orphan", "categoryId": category.id, "authors": [authors[0].id, "missing"]},
        headers=admin_headers,
    )
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "One or more authors were not found"


def test_pagination_pages_do_not_overlap(client, make_book):
    for title in ("A", "B", "C"):
        make_book(title=title)

    first = client.get(f"{API}/books", params={"page": 1, "limit": 1, "sortBy": "title", "sortOrder": "asc"})
    second = client.get(f"{API}/books", params={"page": 2, "limit": 1, "sortBy": "title", "sortOrder": "asc"})
    assert first.status_code == second.status_code == 200

    p1 = first.json()["data"]
    p2 = second.json()["data"]
    assert [b["title"] for b in p1["books"]] == ["A"]
    assert [b["title"] for b in p2["books"]] == ["B"]
    assert p1["pagination"] == {
        "page": 1,
        "limit": 1,
        "total": 3,
        "totalPages": 3,
        "hasNext": True,
        "hasPrev": False,
    }
    assert p2["pagination"]["hasPrev"] is True


def test_limit_is_bounded(client):
    assert client.get(f"{API}/books", params={"limit": 101}).status_code == 400
    assert client.get(f"{API}/books", params={"page": 0}).status_code == 400


def test_filters(client, make_book, authors):
    make_book(title="Memórias Póstumas", language="pt-BR")
    make_book(title="The Hour of the Star", language="en", authors=[authors[1]])
    make_book(title="Quincas Borba", status=BookStatus.MAINTENANCE)

    def titles(**params):
        r = client.get(f"{API}/books", params=params)
        assert r.status_code == 200, r.text
        return sorted(b["title"] for b in r.json()["data"]["books"])

    assert titles(search="star") == ["The Hour of the Star"]
    assert titles(language="en") == ["The Hour of the Star"]
    assert titles(authorId=authors[1].id) == ["The Hour of the Star"]
    assert titles(status="MAINTENANCE") == ["Quincas Borba"]


def test_search_category_and_author_listings(client, make_book, category, authors):
    make_book(title="Helena")
    make_book(title="A Paixão", authors=[authors[1]])

    r = client.get(f"{API}/books/search", params={"q": "helena"})
    assert r.json()["message"] == "Found 1 books"

    r = client.get(f"{API}/books/category/{category.id}")
    assert r.json()["data"]["pagination"]["total"] == 2

    r = client.get(f"{API}/books/author/{authors[1].id}")
    assert [b["title"] for b in r.json()["data"]["books"]] == ["A Paixão"]


def test_get_book_includes_active_loans_and_reservations(client, make_book, make_user, db_session):
    book = make_book()
    reader = make_user()
    _loan(db_session, reader, book)
    _loan(db_session, reader, book, status=LoanStatus.RETURNED)
    db_session.add(Reservation(user_id=reader.id, book_id=book.id))
    db_session.flush()

    r = client.get(f"{API}/books/{book.id}")
    assert r.status_code == 200
    detail = r.json()["data"]["book"]
    assert len(detail["activeLoans"]) == 1
    assert detail["activeLoans"][0]["user"]["email"] == reader.email
    assert len(detail["activeReservations"]) == 1


def test_get_missing_book(client):
    r = client.get(f"{API}/books/missing")
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "Book not found"


def test_update_replaces_authors(client, admin_headers, make_book, authors):
    book = make_book(authors=[authors[0]])

    r = client.put(f"{API}/books/{book.id}", json={"authors": [authors[1].id]}, headers=admin_headers)
    assert r.status_code == 200, r.text
    assert [a["id"] for a in r.json()["data"]["book"]["authors"]] == [authors[1].id]


def test_update_rejects_available_above_total(client, admin_headers, make_book):
    book = make_book(total_copies=2, available_copies=2)

    r = client.put(f"{API}/books/{book.id}", json={"availableCopies": 3}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Available copies cannot be greater than total copies"

    r = client.put(f"{API}/books/{book.id}", json={"totalCopies": 1}, headers=admin_headers)
    assert r.status_code == 400

    r = client.put(f"{API}/books/{book.id}", json={"totalCopies": 5, "availableCopies": 4}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["book"]["availableCopies"] == 4


def test_update_isbn_collision(client, admin_headers, make_book):
    make_book(isbn="0306406152")
    book = make_book(isbn="9780306406157")

    r = client.put(f"{API}/books/{book.id}", json={"isbn": "0306406152"}, headers=admin_headers)
    assert r.status_code == 409

    r = client.put(f"{API}/books/{book.id}", json={"isbn": "9780306406157", "title": "Same ISBN"}, headers=admin_headers)
    assert r.status_code == 200


def test_delete_blocked_by_active_loan(client, admin_headers, make_book, make_user, db_session):
    book = make_book()
    _loan(db_session, make_user(), book, status=LoanStatus.OVERDUE)

    r = client.delete(f"{API}/books/{book.id}", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Cannot delete a book with active loans"
    assert db_session.get(Book, book.id) is not None


def test_delete_blocked_by_active_reservation(client, admin_headers, make_book, make_user, db_session):
    book = make_book()
    db_session.add(Reservation(user_id=make_user().id, book_id=book.id))
    db_session.flush()

    r = client.delete(f"{API}/books/{book.id}", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Cannot delete a book with active reservations"


def test_delete_book_with_only_returned_loans(client, admin_headers, make_book, make_user, db_session, caplog):
    book = make_book()
    book_id = book.id
    _loan(db_session, make_user(), book, status=LoanStatus.RETURNED)

    with caplog.at_level(logging.INFO, logger="library_api.audit"):
        r = client.delete(f"{API}/books/{book_id}", headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"] is None

    db_session.expire_all()
    assert db_session.get(Book, book_id) is None
    remaining = db_session.execute(select(func.count(Loan.id)).where(Loan.book_id == book_id)).scalar_one()
    assert remaining == 0
    assert any("action=DELETE resource=book" in rec.getMessage() for rec in caplog.records)


def test_filtered_listing_on_category_route(client, make_book, category, authors):
    make_book(title="Helena", authors=[authors[0]])
    make_book(title="A Paixão", authors=[authors[1]])

    r = client.get(f"{API}/books/category/{category.id}", params={"authorId": authors[1].id})
    assert r.status_code == 200, r.text
    assert [b["title"] for b in r.json()["data"]["books"]] == ["A Paixão"]


def _failing_commit(db_session, monkeypatch, message):
    def _commit():
        raise IntegrityError("UPDATE books", {}, Exception(message))

    monkeypatch.setattr(db_session, "commit", _commit)
    monkeypatch.setattr(db_session, "rollback", lambda: None)


def test_isbn_race_on_commit_is_a_conflict(db_session, make_book, monkeypatch):
    book = make_book()
    _failing_commit(db_session, monkeypatch, "UNIQUE constraint failed: books.isbn")

    with pytest.raises(ConflictError):
        BookService(db_session).update(book.id, BookUpdateIn(title="Renamed"))


def test_other_integrity_failures_are_not_reported_as_isbn_conflicts(db_session, make_book, monkeypatch):
    book = make_book()
    _failing_commit(db_session, monkeypatch, "FOREIGN KEY constraint failed")

    with pytest.raises(IntegrityError):
        BookService(db_session).update(book.id, BookUpdateIn(title="Renamed"))
