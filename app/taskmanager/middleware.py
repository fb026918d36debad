"""
WSGI plumbing that sits in front of Flask.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any
from urllib.parse import parse_qs

OVERRIDABLE_METHODS = frozenset({"PUT", "PATCH", "DELETE"})


class MethodOverrideMiddleware:
    """
    Lets HTML forms reach PATCH/PUT/DELETE routes.

    A POST to ``/users/3?_method=PATCH`` is dispatched as ``PATCH /users/3``.
    Only POST can be overridden, and only to the methods above.
    """

    def __init__(self, wsgi_app: Callable[..., Iterable[bytes]], param: str = "_method") -> None:
        self.wsgi_app = wsgi_app
        self.param = param

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        if environ.get("REQUEST_METHOD", "").upper() == "POST":
            values = parse_qs(environ.get("QUERY_STRING", "")).get(self.param) or []
            method = (values[0] if values else "").strip().upper()
            if method in OVERRIDABLE_METHODS:
                environ["REQUEST_METHOD"] = method
        return self.wsgi_app(environ, start_response)
