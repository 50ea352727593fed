import pytest

from finance_tracker.app import create_app


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "DB_PATH": str(tmp_path / "finance-test.db"),
        "JWT_SECRET_KEY": "test-secret-key-long-enough-for-hs256-signing",
        "LOG_LEVEL": "WARNING",
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


def _register(client, email, name="Test User", password="secret123"):
    resp = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]


@pytest.fixture
def register(client):
    def _do(email, **kwargs):
        return _register(client, email, **kwargs)
    return _do


@pytest.fixture
def headers(client):
    h, _ = _register(client, "alice@example.com", name="Alice")
    return h


@pytest.fixture
def other_headers(client):
    h, _ = _register(client, "bob@example.com", name="Bob")
    return h


@pytest.fixture
def create_tx(client):
    def _create(headers, **payload):
        resp = client.post("/api/transactions", json=payload, headers=headers)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _create
