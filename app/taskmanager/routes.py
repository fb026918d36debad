from flask import Blueprint, current_app, render_template
from sqlalchemy.exc import SQLAlchemyError

from app.taskmanager.db import ping

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return render_template("welcome/index.html")


@bp.get("/health")
def health():
    """Readiness: the app is up and the database answers."""
    try:
        ping(current_app)
    except SQLAlchemyError:
        current_app.logger.exception("Readiness check failed: database unreachable")
        return {"ok": False, "db": False}, 503
    return {"ok": True, "db": True}


@bp.get("/healthz")
def healthz():
    """Liveness: no DB access, so a slow database never kills the process."""
    return "ok", 200
