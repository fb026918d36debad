import logging
from datetime import timedelta

from flask import Flask, g, render_template, request
from dotenv import load_dotenv

from app.taskmanager.config import load_config
from app.taskmanager.db import init_db, teardown_db_session
from app.taskmanager.i18n import t
from app.taskmanager.middleware import MethodOverrideMiddleware
from app.taskmanager.routes import bp as routes_bp
from app.taskmanager.security import UNGUARDED_PREFIXES, ensure_csrf_token, init_csrf
from app.taskmanager.auth import init_auth, load_current_user
from app.taskmanager.session_routes import bp as session_bp
from app.taskmanager.users.routes import bp as users_bp


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, app.config.get("LOG_LEVEL") or "INFO", logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(level)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    _configure_logging(app)

    app.wsgi_app = MethodOverrideMiddleware(app.wsgi_app)  # type: ignore[method-assign]

    @app.context_processor
    def _inject_globals() -> dict:
        return {
            "csrf_token": ensure_csrf_token(),
            "current_user": getattr(g, "current_user", None),
            "t": t,
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d %H:%M") -> str:
        if value is None:
            return "—"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)
    init_auth(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(session_bp)

    init_csrf(app)

    def _load_user_wrapper():
        if request.path.startswith(UNGUARDED_PREFIXES):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        return render_template("errors/500.html"), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html"), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        return render_template("errors/403.html"), 403

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        return render_template("errors/400.html", message=t("errors.badRequest")), 400

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
