"""Tests for user registration and own-profile editing."""
from datetime import datetime
from urllib.parse import urlsplit

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.taskmanager import create_app
from app.taskmanager.db import create_schema, session_scope
from app.taskmanager.models import AuditEvent, User

CSRF = "test-csrf-token"


def _make_user(email: str, first_name: str, password: str = "pw-secret") -> User:
    now = datetime.utcnow()
    return User(
        first_name=first_name,
        last_name="Tester",
        email=email,
        password_hash=generate_password_hash(password),
        created_at=now,
        updated_at=now,
    )


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    create_schema(app)

    with session_scope(app) as s:
        s.add_all([_make_user("alice@example.com", "Alice"), _make_user("bob@example.com", "Bob")])
    return app


def _browser(app):
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["csrf_token"] = CSRF
    c.environ_base["HTTP_X_CSRF_TOKEN"] = CSRF
    return c


@pytest.fixture()
def client(app):
    return _browser(app)


def _user_id(app, email: str) -> int:
    with session_scope(app) as s:
        return s.query(User).filter(User.email == email).one().id


def _get_user(app, user_id: int) -> User | None:
    with session_scope(app) as s:
        return s.get(User, user_id)


def _login(client, email="alice@example.com", password="pw-secret"):
    return client.post("/session", data={"email": email, "password": password})


def _path(r) -> str:
    return urlsplit(r.headers["Location"]).path


def test_users_index_lists_everyone(client):
    r = client.get("/users")
    assert r.status_code == 200
    assert b"alice@example.com" in r.data
    assert b"bob@example.com" in r.data


def test_users_index_shows_actions_only_for_own_row(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    bob_id = _user_id(app, "bob@example.com")
    r = client.get("/users")
    assert f"/users/{alice_id}/edit".encode() in r.data
    assert f"/users/{bob_id}/edit".encode() not in r.data


def test_new_user_form(client):
    r = client.get("/users/new")
    assert r.status_code == 200
    assert b'name="first_name"' in r.data


def test_create_user(app, client):
    r = client.post(
        "/users",
        data={"first_name": "Carol", "last_name": "Danvers", "email": "Carol@Example.com", "password": "secret"},
    )
    assert r.status_code == 302
    assert _path(r) == "/"

    with session_scope(app) as s:
        user = s.query(User).filter(User.email == "carol@example.com").one()
        assert user.first_name == "Carol"
        assert user.last_name == "Danvers"
        assert user.password_hash != "secret"
        assert check_password_hash(user.password_hash, "secret")
        assert s.query(AuditEvent).filter(AuditEvent.action == "user.create").count() == 1


def test_create_user_flashes_success(client):
    r = client.post(
        "/users",
        data={"first_name": "Carol", "last_name": "Danvers", "email": "carol@example.com", "password": "secret"},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"User registered successfully" in r.data


def test_create_user_invalid_rerenders_with_errors(app, client):
    r = client.post("/users", data={"first_name": "", "last_name": "X", "email": "not-an-email", "password": "1"})
    assert r.status_code == 200
    assert b"Failed to register" in r.data
    assert b"invalid-feedback" in r.data
    assert b"First name is required" in r.data
    assert b"Email must be a valid address" in r.data
    assert b'value="not-an-email"' in r.data
    with session_scope(app) as s:
        assert s.query(User).count() == 2


def test_create_user_duplicate_email(app, client):
    r = client.post(
        "/users",
        data={"first_name": "Other", "last_name": "Alice", "email": "alice@example.com", "password": "secret"},
    )
    assert r.status_code == 200
    assert b"Email is already taken" in r.data
    with session_scope(app) as s:
        assert s.query(User).filter(User.email == "alice@example.com").count() == 1


def test_create_requires_csrf(app):
    c = app.test_client()
    r = c.post("/users", data={"first_name": "A", "last_name": "B", "email": "a@example.com", "password": "secret"})
    assert r.status_code == 400


def test_edit_own_profile(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    r = client.get(f"/users/{alice_id}/edit")
    assert r.status_code == 200
    assert b'value="Alice"' in r.data


def test_edit_redirects_to_login_when_anonymous(app, client):
    alice_id = _user_id(app, "alice@example.com")
    r = client.get(f"/users/{alice_id}/edit")
    assert r.status_code == 302
    assert _path(r) == "/session/new"

    r = client.get(f"/users/{alice_id}/edit", follow_redirects=True)
    assert b"Access denied! Please login" in r.data


def test_edit_other_user_forbidden(app, client):
    _login(client)
    bob_id = _user_id(app, "bob@example.com")
    r = client.get(f"/users/{bob_id}/edit")
    assert r.status_code == 302
    assert _path(r) == "/users"

    r = client.get(f"/users/{bob_id}/edit", follow_redirects=True)
    assert b"You cant edit another user" in r.data


def test_edit_missing_user_404(client):
    _login(client)
    r = client.get("/users/9999/edit")
    assert r.status_code == 404


def test_update_own_profile(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    r = client.patch(f"/users/{alice_id}", data={"first_name": "UpdatedName"})
    assert r.status_code == 302
    assert _path(r) == "/users"

    user = _get_user(app, alice_id)
    assert user.first_name == "UpdatedName"
    assert user.last_name == "Tester"
    assert user.email == "alice@example.com"

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "user.update").one()
        assert ev.actor_user_id == alice_id
        assert "UpdatedName" in ev.metadata_json


def test_update_via_method_override(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    r = client.post(f"/users/{alice_id}?_method=PATCH", data={"last_name": "Liddell"}, follow_redirects=True)
    assert r.status_code == 200
    assert b"User changed" in r.data
    assert _get_user(app, alice_id).last_name == "Liddell"


def test_update_blank_password_keeps_current(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    before = _get_user(app, alice_id).password_hash
    r = client.patch(
        f"/users/{alice_id}",
        data={"first_name": "Alice", "last_name": "Tester", "email": "alice@example.com", "password": ""},
    )
    assert r.status_code == 302
    assert _get_user(app, alice_id).password_hash == before


def test_update_password(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    r = client.patch(f"/users/{alice_id}", data={"password": "new-password"})
    assert r.status_code == 302
    assert check_password_hash(_get_user(app, alice_id).password_hash, "new-password")

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "user.update").one()
        assert "new-password" not in ev.metadata_json


def test_update_validation_errors(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    r = client.patch(f"/users/{alice_id}", data={"first_name": ""})
    assert r.status_code == 200
    assert b"invalid-feedback" in r.data
    assert b"updating error" in r.data
    assert _get_user(app, alice_id).first_name == "Alice"


def test_update_email_taken(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    r = client.patch(f"/users/{alice_id}", data={"email": "bob@example.com"})
    assert r.status_code == 200
    assert b"Email is already taken" in r.data
    assert _get_user(app, alice_id).email == "alice@example.com"


def test_update_other_user_forbidden(app, client):
    _login(client)
    bob_id = _user_id(app, "bob@example.com")
    r = client.patch(f"/users/{bob_id}", data={"first_name": "Hack"})
    assert r.status_code == 302
    assert _path(r) == "/users"
    assert _get_user(app, bob_id).first_name == "Bob"


def test_update_requires_login(app, client):
    alice_id = _user_id(app, "alice@example.com")
    r = client.patch(f"/users/{alice_id}", data={"first_name": "Anon"})
    assert r.status_code == 302
    assert _path(r) == "/session/new"
    assert _get_user(app, alice_id).first_name == "Alice"


def test_delete_own_profile_logs_out(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    r = client.delete(f"/users/{alice_id}")
    assert r.status_code == 302
    assert _path(r) == "/"
    assert _get_user(app, alice_id) is None

    r = client.get(f"/users/{alice_id}/edit")
    assert r.status_code == 302
    assert _path(r) == "/session/new"

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "user.delete").one()
        assert ev.actor_user_email == "alice@example.com"
        assert ev.actor_user_id is None
        assert ev.entity_id == str(alice_id)


def test_delete_via_method_override(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    r = client.post(f"/users/{alice_id}?_method=DELETE", follow_redirects=True)
    assert r.status_code == 200
    assert b"User deleted" in r.data
    assert _get_user(app, alice_id) is None


def test_delete_other_user_forbidden(app, client):
    _login(client)
    bob_id = _user_id(app, "bob@example.com")
    r = client.delete(f"/users/{bob_id}")
    assert r.status_code == 302
    assert _path(r) == "/users"
    assert _get_user(app, bob_id) is not None


def test_delete_missing_user_404(client):
    _login(client)
    r = client.delete("/users/9999")
    assert r.status_code == 404


def test_users_index_escapes_delete_confirmation(app, client):
    _login(client)
    r = client.get("/users")
    assert b"return confirm(\"Delete your account?\");" in r.data


def test_create_user_name_too_long(app, client):
    r = client.post(
        "/users",
        data={"first_name": "x" * 300, "last_name": "Long", "email": "long@example.com", "password": "secret"},
    )
    assert r.status_code == 200
    assert b"First name must be at most 255 characters" in r.data
    with session_scope(app) as s:
        assert s.query(User).filter(User.email == "long@example.com").count() == 0


def test_create_user_email_too_long(app, client):
    email = "a" * 310 + "@example.com"
    r = client.post("/users", data={"first_name": "A", "last_name": "B", "email": email, "password": "secret"})
    assert r.status_code == 200
    assert b"Email must be at most 320 characters" in r.data
    with session_scope(app) as s:
        assert s.query(User).count() == 2


def test_update_last_name_too_long(app, client):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")
    r = client.patch(f"/users/{alice_id}", data={"last_name": "y" * 256})
    assert r.status_code == 200
    assert b"Last name must be at most 255 characters" in r.data
    assert _get_user(app, alice_id).last_name == "Tester"


def test_update_database_failure_rerenders_form(app, client, monkeypatch):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")

    def failing_commit(self):
        raise SQLAlchemyError("database went away")

    with monkeypatch.context() as m:
        m.setattr(Session, "commit", failing_commit)
        r = client.patch(f"/users/{alice_id}", data={"first_name": "Boom"})

    assert r.status_code == 200
    assert b"updating error" in r.data
    assert b'value="Boom"' in r.data
    assert _get_user(app, alice_id).first_name == "Alice"


def test_delete_database_failure_keeps_account(app, client, monkeypatch):
    _login(client)
    alice_id = _user_id(app, "alice@example.com")

    def failing_commit(self):
        raise SQLAlchemyError("database went away")

    with monkeypatch.context() as m:
        m.setattr(Session, "commit", failing_commit)
        r = client.delete(f"/users/{alice_id}")
    assert r.status_code == 302
    assert _path(r) == "/users"
    r = client.get("/users")

    assert b"Failed to delete user" in r.data
    assert _get_user(app, alice_id) is not None
    # still signed in
    assert client.get(f"/users/{alice_id}/edit").status_code == 200


def test_deleted_account_session_not_reused_by_new_signup(app):
    first = _browser(app)
    second = _browser(app)
    _login(first, "bob@example.com")
    _login(second, "bob@example.com")
    bob_id = _user_id(app, "bob@example.com")

    assert first.delete(f"/users/{bob_id}").status_code == 302
    r = first.post(
        "/users",
        data={"first_name": "Mallory", "last_name": "M", "email": "mallory@example.com", "password": "secret"},
    )
    assert r.status_code == 302
    mallory_id = _user_id(app, "mallory@example.com")
    assert mallory_id != bob_id

    r = second.get(f"/users/{bob_id}/edit")
    assert r.status_code == 302
    assert _path(r) == "/session/new"
    r = second.get(f"/users/{mallory_id}/edit")
    assert r.status_code == 302
    assert _path(r) == "/session/new"
    with session_scope(app) as s:
        assert s.get(User, mallory_id).first_name == "Mallory"


def test_session_with_foreign_fingerprint_is_dropped(app, client):
    alice_id = _user_id(app, "alice@example.com")
    with client.session_transaction() as sess:
        sess["user_id"] = alice_id
        sess["user_key"] = "issued-to-someone-else"
    r = client.get(f"/users/{alice_id}/edit")
    assert r.status_code == 302
    assert _path(r) == "/session/new"
    with client.session_transaction() as sess:
        assert "user_id" not in sess
