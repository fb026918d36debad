import pytest

from app.taskmanager import create_app
from app.taskmanager.db import create_schema


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    create_schema(app)
    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json == {"ok": True, "db": True}


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_welcome_page(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b"Hello from Hexlet!" in r.data
    assert b"Login" in r.data
    assert b"Register" in r.data


def test_unknown_page_renders_404(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert b"Page not found" in r.data


def test_production_requires_real_secret(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost/taskmanager")
    monkeypatch.setenv("SECRET_KEY", "change-me")
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        create_app()


def test_production_rejects_sqlite(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")
    monkeypatch.setenv("SECRET_KEY", "a-real-secret")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()
