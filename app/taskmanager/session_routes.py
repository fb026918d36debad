from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from app.taskmanager.audit import record_event
from app.taskmanager.auth import current_user, login_user, logout_user, rate_limiter
from app.taskmanager.db import db_session
from app.taskmanager.i18n import t
from app.taskmanager.users.service import authenticate

bp = Blueprint("session", __name__)


@bp.get("/session/new")
def new():
    return render_template("session/new.html", form={}, errors={})


@bp.post("/session")
def create():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    ip = request.remote_addr or "unknown"
    limiter = rate_limiter()

    if limiter.is_limited(ip):
        current_app.logger.warning("Login rate limit hit ip=%s", ip)
        minutes = max(1, int(limiter.window.total_seconds()) // 60)
        flash(t("flash.session.create.rateLimited", minutes=minutes), "danger")
        return redirect(url_for("session.new"))

    limiter.record(ip)

    s = db_session()
    user = authenticate(s, email, password)
    if user is None:
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email or None,
            reason="Invalid credentials",
        )
        s.commit()
        flash(t("flash.session.create.error"), "danger")
        return render_template("session/new.html", form={"email": email}, errors={})

    login_user(user)
    limiter.reset(ip)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    flash(t("flash.session.create.success"), "success")
    return redirect(url_for("routes.index"))


@bp.delete("/session")
def delete():
    user = current_user()
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    logout_user()
    flash(t("flash.session.delete.success"), "success")
    return redirect(url_for("routes.index"))
