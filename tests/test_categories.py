from conftest import API
from library_api.models import Category
from sqlalchemy import func, select


def test_public_list_includes_book_counts(client, make_book, db_session):
    make_book()
    make_book()
    db_session.add(Category(name="Biography"))
    db_session.flush()

    r = client.get(f"{API}/categories")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["total"] == 2
    counts = {c["name"]: c["booksCount"] for c in data["categories"]}
    assert counts == {"Biography": 0, "Fiction": 2}


def test_get_category_with_recent_books(client, make_book, category):
    for i in range(7):
        make_book(title=f"Book {i}")

    r = client.get(f"{API}/categories/{category.id}")
    assert r.status_code == 200
    detail = r.json()["data"]["category"]
    assert detail["booksCount"] == 7
    assert len(detail["recentBooks"]) == 5


def test_create_requires_admin(client, librarian_headers, admin_headers):
    r = client.post(f"{API}/categories", json={"name": "Poetry"}, headers=librarian_headers)
    assert r.status_code == 403

    r = client.post(f"{API}/categories", json={"name": "Poetry", "description": "Verse"}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["data"]["category"]["booksCount"] == 0


def test_duplicate_name_conflicts(client, admin_headers, category):
    r = client.post(f"{API}/categories", json={"name": category.name}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["error"]["field"] == "name"


def test_update_category(client, admin_headers, category, db_session):
    db_session.add(Category(name="Poetry"))
    db_session.flush()

    r = client.put(f"{API}/categories/{category.id}", json={"description": "Novels"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["category"]["description"] == "Novels"

    r = client.put(f"{API}/categories/{category.id}", json={"name": "Poetry"}, headers=admin_headers)
    assert r.status_code == 409


def test_delete_category_with_books_changes_nothing(client, admin_headers, make_book, category, db_session):
    make_book()

    r = client.delete(f"{API}/categories/{category.id}", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Cannot delete a category that has associated books"
    assert db_session.get(Category, category.id) is not None


def test_delete_empty_category(client, admin_headers, db_session):
    empty = Category(name="Empty")
    db_session.add(empty)
    db_session.flush()
    category_id = empty.id

    r = client.delete(f"{API}/categories/{category_id}", headers=admin_headers)
    assert r.status_code == 200
    assert db_session.execute(select(func.count(Category.id)).where(Category.id == category_id)).scalar_one() == 0


def test_missing_category(client):
    r = client.get(f"{API}/categories/missing")
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "Category not found"
