"""
Session-bound CSRF tokens for the HTML forms.

Every rendered page carries ``csrf_token``; any mutating request must echo it
back in the ``csrf_token`` form field or the ``X-CSRF-Token`` header.
"""
from __future__ import annotations

import secrets

from flask import Flask, Request, render_template, request, session

from app.taskmanager.i18n import t

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Static files and health checks never touch the session.
UNGUARDED_PREFIXES = ("/static/", "/health")

# Sign-in/sign-out carry no profile data and must work from a fresh cookie.
EXEMPT_ENDPOINT_PREFIXES = ("session.",)


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def submitted_token(req: Request) -> str | None:
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")
    if not token and req.is_json:
        body = req.get_json(silent=True)
        if isinstance(body, dict):
            token = body.get("csrf_token")
    return token or None


def validate_csrf(req: Request) -> bool:
    token = submitted_token(req)
    expected = session.get("csrf_token")
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))


def init_csrf(app: Flask) -> None:
    @app.before_request
    def _csrf_guard():
        if request.path.startswith(UNGUARDED_PREFIXES):
            return None
        ensure_csrf_token()
        if request.method not in MUTATING_METHODS:
            return None
        if (request.endpoint or "").startswith(EXEMPT_ENDPOINT_PREFIXES):
            return None
        if not validate_csrf(request):
            app.logger.warning("CSRF check failed method=%s path=%s", request.method, request.path)
            return render_template("errors/400.html", message=t("errors.csrf")), 400
        return None
