from __future__ import annotations

import logging
from typing import Any

from flask import current_app, has_app_context

from app.taskmanager.locales import LOCALES

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en"


def _lookup(table: dict, key: str) -> Any:
    node: Any = table
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def active_locale() -> str:
    if has_app_context():
        return current_app.config.get("LOCALE") or DEFAULT_LOCALE
    return DEFAULT_LOCALE


def t(key: str, locale: str | None = None, **kwargs: Any) -> str:
    """
    Translate a dotted key, e.g. ``t("flash.users.update.success")``.
    Unknown keys come back unchanged so a missing string is visible, not fatal.
    """
    table = LOCALES.get(locale or active_locale()) or LOCALES[DEFAULT_LOCALE]
    value = _lookup(table, key)
    if value is None and table is not LOCALES[DEFAULT_LOCALE]:
        value = _lookup(LOCALES[DEFAULT_LOCALE], key)
    if not isinstance(value, str):
        logger.warning("Missing translation key=%s", key)
        return key
    return value.format(**kwargs) if kwargs else value
