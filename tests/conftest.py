import os

# Settings are read at import time; pin a deterministic test environment first.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient
from library_api.api.rate_limit import get_counter_store
from library_api.core.security import hash_password
from library_api.core.tokens import get_token_issuer
from library_api.db.session import enable_sqlite_foreign_keys, get_db
from library_api.main import app
from library_api.models import Author, Base, Book, Category, Role, User
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

API = "/api/v1"
DEFAULT_PASSWORD = "password123"


@pytest.fixture(scope="session")
def engine():
    # Override at runtime: TEST_DATABASE_URL=... pytest
    url = os.getenv("TEST_DATABASE_URL")
    if url:
        eng = create_engine(url, pool_pre_ping=True)
    else:
        # Default to in-memory SQLite so tests run without external services.
        eng = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    enable_sqlite_foreign_keys(eng)

    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    tx = connection.begin()

    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=connection
    )
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        tx.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    get_counter_store().reset()
    yield
    get_counter_store().reset()


@pytest.fixture()
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(role: Role = Role.USER, *, email: str | None = None, is_active: bool = True,
              password: str = DEFAULT_PASSWORD) -> User:
        counter["n"] += 1
        user = User(
            name=f"User {counter['n']}",
            email=email or f"{role.value.lower()}{counter['n']}@example.com",
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.flush()
        return user

    return _make


def bearer(user: User) -> dict[str, str]:
    token = get_token_issuer().issue_access_token(
        {"id": user.id, "email": user.email, "role": user.role.value}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(make_user):
    return bearer(make_user(Role.ADMIN))


@pytest.fixture()
def librarian_headers(make_user):
    return bearer(make_user(Role.LIBRARIAN))


@pytest.fixture()
def user_headers(make_user):
    return bearer(make_user(Role.USER))


@pytest.fixture()
def category(db_session):
    c = Category(name="Fiction", description="Made-up stories")
    db_session.add(c)
    db_session.flush()
    return c


@pytest.fixture()
def authors(db_session):
    items = [
        Author(name="Machado de Assis", nationality="Brazilian", biography="Realist novelist"),
        Author(name="Clarice Lispector", nationality="Brazilian"),
    ]
    db_session.add_all(items)
    db_session.flush()
    return items


@pytest.fixture()
def make_book(db_session, category, authors):
    counter = {"n": 0}

    def _make(**overrides) -> Book:
        counter["n"] += 1
        fields = {
            "title": f"Book {counter['n']}",
            "total_copies": 2,
            "available_copies": 2,
            "category_id": category.id,
            "authors": [authors[0]],
        }
        fields.update(overrides)
        book = Book(**fields)
        db_session.add(book)
        db_session.flush()
        return book

    return _make
