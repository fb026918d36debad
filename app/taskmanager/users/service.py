from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING

from werkzeug.security import check_password_hash, generate_password_hash

from app.taskmanager.audit import record_event
from app.taskmanager.i18n import t

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.taskmanager.models import User


USER_FIELDS = ("first_name", "last_name", "email", "password")
PROFILE_FIELDS = ("first_name", "last_name", "email")
PASSWORD_MIN_LENGTH = 3

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class ValidationError(ValueError):
    """Raised by create/update when the payload fails validation."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__("; ".join(f"{k}: {', '.join(v)}" for k, v in errors.items()))
        self.errors = errors


def normalize_payload(form: Mapping[str, str | None]) -> dict[str, str]:
    """
    Pick the user fields out of submitted form data.
    Fields not submitted at all are left out so updates can be partial.
    """
    payload: dict[str, str] = {}
    for field in USER_FIELDS:
        if field not in form:
            continue
        value = form.get(field) or ""
        if field == "password":
            payload[field] = value
        elif field == "email":
            payload[field] = value.strip().lower()
        else:
            payload[field] = value.strip()
    return payload


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def validate_user_payload(s: "Session", payload: dict, *, user: "User | None" = None) -> dict[str, list[str]]:
    """
    Validate a create (user is None) or update payload. Returns field -> messages.

    On update, fields missing from the payload keep their stored value and an
    empty password means "unchanged"; a submitted-but-blank name or email is still an error.
    """
    from app.taskmanager.models import User

    creating = user is None
    errors: dict[str, list[str]] = {}

    def add(field: str, key: str, **kwargs) -> None:
        errors.setdefault(field, []).append(t(f"errors.users.{field}.{key}", **kwargs))

    def max_length(field: str) -> int:
        return User.__table__.c[field].type.length

    for field in ("first_name", "last_name"):
        if not (creating or field in payload):
            continue
        value = (payload.get(field) or "").strip()
        if not value:
            add(field, "required")
        elif len(value) > max_length(field):
            add(field, "tooLong", max_length=max_length(field))

    if creating or "email" in payload:
        email = (payload.get("email") or "").strip().lower()
        if not email:
            add("email", "required")
        elif len(email) > max_length("email"):
            add("email", "tooLong", max_length=max_length("email"))
        elif not is_valid_email(email):
            add("email", "invalid")
        else:
            q = s.query(User).filter(User.email == email)
            if user is not None:
                q = q.filter(User.id != user.id)
            if q.first() is not None:
                add("email", "taken")

    password = payload.get("password") or ""
    if creating and not password:
        add("password", "required")
    elif password and len(password) < PASSWORD_MIN_LENGTH:
        add("password", "tooShort", min_length=PASSWORD_MIN_LENGTH)

    return errors


def create_user(s: "Session", payload: dict) -> "User":
    """Register a new user. Raises ValidationError."""
    from app.taskmanager.models import User

    errors = validate_user_payload(s, payload)
    if errors:
        raise ValidationError(errors)

    now = datetime.utcnow()
    user = User(
        first_name=payload["first_name"].strip(),
        last_name=payload["last_name"].strip(),
        email=payload["email"].strip().lower(),
        password_hash=generate_password_hash(payload["password"]),
        created_at=now,
        updated_at=now,
    )
    s.add(user)
    s.flush()

    record_event(
        s,
        actor=user,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email},
    )
    return user


def update_user(s: "Session", user: "User", payload: dict, actor: "User") -> "User":
    """Apply a partial profile update. Raises ValidationError."""
    errors = validate_user_payload(s, payload, user=user)
    if errors:
        raise ValidationError(errors)

    changes = {}
    for field in PROFILE_FIELDS:
        if field not in payload:
            continue
        new = payload[field].strip()
        if field == "email":
            new = new.lower()
        old = getattr(user, field)
        if new != old:
            changes[field] = {"old": old, "new": new}
            setattr(user, field, new)

    if payload.get("password"):
        user.password_hash = generate_password_hash(payload["password"])
        changes["password"] = "changed"

    user.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=actor,
        action="user.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"changes": changes},
    )
    return user


def delete_user(s: "Session", user: "User", actor: "User") -> None:
    record_event(
        s,
        actor=actor,
        action="user.delete",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "full_name": user.full_name},
    )
    # Event row first; the FK is nulled when the user row goes.
    s.flush()
    s.delete(user)
    s.flush()


def authenticate(s: "Session", email: str, password: str) -> "User | None":
    from app.taskmanager.models import User

    email = (email or "").strip().lower()
    if not email or not password:
        return None
    user = s.query(User).filter(User.email == email).one_or_none()
    if user is None or not check_password_hash(user.password_hash, password):
        return None
    return user


def is_owner(current_user: "User | None", user: "User") -> bool:
    """Only the signed-in user may change their own record."""
    return current_user is not None and current_user.id == user.id
