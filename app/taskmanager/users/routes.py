from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.taskmanager.auth import current_user, logout_user, require_login
from app.taskmanager.db import db_session
from app.taskmanager.i18n import t
from app.taskmanager.models import User
from app.taskmanager.users.service import (
    ValidationError,
    create_user,
    delete_user,
    is_owner,
    normalize_payload,
    update_user,
)

bp = Blueprint("users", __name__)


def _get_user_or_404(user_id: int) -> User:
    user = db_session().get(User, user_id)
    if not user:
        abort(404)
    return user


def _not_allowed():
    flash(t("flash.users.notAllowed"), "danger")
    return redirect(url_for("users.index"))


# ---------- List ----------
@bp.get("/users")
def index():
    s = db_session()
    users = s.query(User).order_by(User.id.asc()).all()
    return render_template("users/index.html", users=users)


# ---------- Register ----------
@bp.get("/users/new")
def new():
    return render_template("users/new.html", form={}, errors={})


@bp.post("/users")
def create():
    s = db_session()
    payload = normalize_payload(request.form)
    try:
        user = create_user(s, payload)
        s.commit()
    except ValidationError as e:
        s.rollback()
        flash(t("flash.users.create.error"), "danger")
        return render_template("users/new.html", form=payload, errors=e.errors)
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("User registration failed (email=%s request_id=%s)", payload.get("email"), g.request_id)
        flash(t("flash.users.create.error"), "danger")
        return render_template("users/new.html", form=payload, errors={})

    current_app.logger.info("User registered id=%s", user.id)
    flash(t("flash.users.create.success"), "success")
    return redirect(url_for("routes.index"))


# ---------- Edit ----------
@bp.get("/users/<int:user_id>/edit")
@require_login
def edit(user_id: int):
    user = _get_user_or_404(user_id)
    if not is_owner(current_user(), user):
        return _not_allowed()
    form = {"first_name": user.first_name, "last_name": user.last_name, "email": user.email}
    return render_template("users/edit.html", user=user, form=form, errors={})


@bp.route("/users/<int:user_id>", methods=["PATCH", "PUT"])
@require_login
def update(user_id: int):
    s = db_session()
    user = _get_user_or_404(user_id)
    actor = current_user()
    if not is_owner(actor, user):
        current_app.logger.warning("Blocked update of user=%s by user=%s", user.id, actor.id)
        return _not_allowed()

    payload = normalize_payload(request.form)
    try:
        update_user(s, user, payload, actor)
        s.commit()
    except ValidationError as e:
        s.rollback()
        flash(t("flash.users.update.error"), "danger")
        return render_template("users/edit.html", user=user, form=_form_for(user, payload), errors=e.errors)
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("User update failed (user_id=%s request_id=%s)", user_id, g.request_id)
        flash(t("flash.users.update.error"), "danger")
        return render_template("users/edit.html", user=user, form=_form_for(user, payload), errors={})

    flash(t("flash.users.update.success"), "success")
    return redirect(url_for("users.index"))


def _form_for(user: User, payload: dict) -> dict:
    # Submitted values win; fields not in the form show what is stored.
    form = {"first_name": user.first_name, "last_name": user.last_name, "email": user.email}
    form.update({k: v for k, v in payload.items() if k != "password"})
    return form


# ---------- Delete ----------
@bp.delete("/users/<int:user_id>")
@require_login
def delete(user_id: int):
    s = db_session()
    user = _get_user_or_404(user_id)
    actor = current_user()
    if not is_owner(actor, user):
        current_app.logger.warning("Blocked delete of user=%s by user=%s", user.id, actor.id)
        return _not_allowed()

    try:
        delete_user(s, user, actor)
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("User delete failed (user_id=%s request_id=%s)", user_id, g.request_id)
        flash(t("flash.users.delete.error"), "danger")
        return redirect(url_for("users.index"))

    logout_user()
    flash(t("flash.users.delete.success"), "success")
    return redirect(url_for("routes.index"))
