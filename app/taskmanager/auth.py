from __future__ import annotations

import hashlib
import uuid
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta
from functools import wraps
from typing import Any

from flask import Flask, current_app, flash, g, redirect, request, session, url_for

from app.taskmanager.db import db_session
from app.taskmanager.i18n import t
from app.taskmanager.models import User
from app.taskmanager.security import UNGUARDED_PREFIXES


class LoginRateLimiter:
    """Sliding-window counter of login attempts per client IP."""

    def __init__(self, limit: int, window_seconds: int) -> None:
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self._attempts: dict[str, list[datetime]] = defaultdict(list)

    def is_limited(self, ip: str) -> bool:
        cutoff = datetime.utcnow() - self.window
        recent = [ts for ts in self._attempts.get(ip, ()) if ts > cutoff]
        if not recent:
            self._attempts.pop(ip, None)
            return False
        self._attempts[ip] = recent
        return len(recent) >= self.limit

    def tracked_ips(self) -> int:
        return len(self._attempts)

    def record(self, ip: str) -> None:
        self._attempts[ip].append(datetime.utcnow())

    def reset(self, ip: str) -> None:
        self._attempts.pop(ip, None)


def init_auth(app: Flask) -> None:
    app.extensions["login_rate_limiter"] = LoginRateLimiter(
        limit=app.config["LOGIN_RATE_LIMIT"],
        window_seconds=app.config["LOGIN_RATE_WINDOW"],
    )


def rate_limiter() -> LoginRateLimiter:
    return current_app.extensions["login_rate_limiter"]


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(UNGUARDED_PREFIXES):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or session.get("user_key") != session_fingerprint(user):
        # Account was deleted (and its id possibly reissued) since the cookie was signed.
        logout_user()
        return
    g.current_user = user


def session_fingerprint(user: User) -> str:
    """Identifies one account for its whole life, even if the database reuses its id."""
    raw = f"{user.id}:{user.created_at.isoformat()}"
    return hashlib.sha256(raw.encode()).hexdigest()[:32]


def current_user() -> User | None:
    return getattr(g, "current_user", None)


def login_user(user: User) -> None:
    session["user_id"] = user.id
    session["user_key"] = session_fingerprint(user)
    session.permanent = True
    g.current_user = user


def logout_user() -> None:
    session.pop("user_id", None)
    session.pop("user_key", None)
    g.current_user = None


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if current_user() is None:
            flash(t("flash.authError"), "danger")
            return redirect(url_for("session.new"))
        return fn(*args, **kwargs)

    return wrapped
