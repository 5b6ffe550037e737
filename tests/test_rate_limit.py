import pytest
from conftest import API, bearer
from library_api.api.rate_limit import MemoryCounterStore, get_counter_store
from library_api.core.config import settings
from library_api.main import app
from library_api.models import Role


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock(client):
    fake = FakeClock()
    store = MemoryCounterStore(clock=fake)
    app.dependency_overrides[get_counter_store] = lambda: store
    yield fake
    app.dependency_overrides.pop(get_counter_store, None)


def test_memory_store_counts_within_window():
    clock = FakeClock(now=600.0)
    store = MemoryCounterStore(clock=clock)

    assert store.hit("k", 60) == (1, 60)
    clock.now = 630.0
    assert store.hit("k", 60) == (2, 30)
    assert store.hit("other", 60)[0] == 1


def test_memory_store_resets_on_next_window():
    clock = FakeClock(now=600.0)
    store = MemoryCounterStore(clock=clock)
    store.hit("k", 60)
    store.hit("k", 60)

    clock.now = 660.0
    assert store.hit("k", 60)[0] == 1


def test_auth_limit_rejects_request_that_crosses_ceiling(client, clock):
    body = {"email": "nobody@example.com", "password": "whatever"}
    for _ in range(settings.rate_limit_auth_max):
        assert client.post(f"{API}/auth/login", json=body).status_code == 401

    r = client.post(f"{API}/auth/login", json=body)
    assert r.status_code == 429
    err = r.json()["error"]
    assert err["type"] == "RateLimitError"
    assert err["message"] == "Too many authentication attempts. Try again later."
    assert err["retryAfter"] > 0
    assert r.headers["Retry-After"] == str(err["retryAfter"])


def test_counter_resets_after_window(client, clock):
    body = {"email": "nobody@example.com", "password": "whatever"}
    for _ in range(settings.rate_limit_auth_max):
        client.post(f"{API}/auth/login", json=body)
    assert client.post(f"{API}/auth/login", json=body).status_code == 429

    clock.now += settings.rate_limit_auth_window_seconds
    assert client.post(f"{API}/auth/login", json=body).status_code == 401


def test_search_limit_skips_admin(client, make_user, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_search_max", 1)
    admin_headers = bearer(make_user(Role.ADMIN))

    assert client.get(f"{API}/books/search", params={"q": "x"}).status_code == 200
    assert client.get(f"{API}/books/search", params={"q": "x"}).status_code == 429

    for _ in range(3):
        r = client.get(f"{API}/books/search", params={"q": "x"}, headers=admin_headers)
        assert r.status_code == 200


def test_create_limit(client, admin_headers, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_create_max", 2)

    for name in ("Drama", "Poetry"):
        assert client.post(f"{API}/categories", json={"name": name}, headers=admin_headers).status_code == 201

    r = client.post(f"{API}/categories", json={"name": "Essays"}, headers=admin_headers)
    assert r.status_code == 429
    assert r.json()["error"]["message"] == "Too many resources created. Try again later."


def test_general_limit_covers_every_api_route(client, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_general_max", 2)

    assert client.get(f"{API}/categories").status_code == 200
    assert client.get(f"{API}/authors").status_code == 200
    r = client.get(f"{API}/categories")
    assert r.status_code == 429
    assert r.json()["error"]["message"] == "Too many requests. Try again in a few minutes."


def test_disabled_limiter_admits_everything(client, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_enabled", False)
    monkeypatch.setattr(settings, "rate_limit_general_max", 1)

    for _ in range(3):
        assert client.get(f"{API}/categories").status_code == 200


def test_memory_store_drops_closed_windows():
    clock = FakeClock(now=600.0)
    store = MemoryCounterStore(clock=clock)
    for i in range(1000):
        store.hit(f"rl:general:10.0.{i // 256}.{i % 256}", 60)
    assert store.size() == 1000

    clock.now += 10_000
    store.hit("rl:general:10.9.9.9", 60)
    assert store.size() == 1


def test_memory_store_keeps_open_windows_when_sweeping():
    clock = FakeClock(now=600.0)
    store = MemoryCounterStore(clock=clock, sweep_interval=1)
    store.hit("short", 60)
    store.hit("long", 900)

    clock.now = 700.0
    store.hit("other", 60)
    assert store.size() == 2
    assert store.hit("long", 900)[0] == 2
