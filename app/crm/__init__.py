import logging
import os
from datetime import timedelta

from flask import Flask, g, request, session
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.crm.config import load_config
from app.crm.db import init_db, teardown_db_session
from app.crm.errors import CrmError
from app.crm import models  # noqa: F401  (registers every table on Base.metadata)
from app.crm.routes import bp as routes_bp
from app.crm.auth import bp as auth_bp, load_current_user
from app.crm.modules.profiles.admin import bp as profiles_bp
from app.crm.modules.customers.admin import bp as customers_bp
from app.crm.modules.reminders.admin import bp as reminders_bp
from app.crm.modules.dashboard.admin import bp as dashboard_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    # Identity first: everything after it may read g.current_user and g.request_id.
    app.before_request(load_current_user)

    from app.crm.security import ensure_csrf_token, validate_csrf, SAFE_METHODS

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        session.permanent = True
        if request.method in SAFE_METHODS:
            return None
        # Auth endpoints issue the token; they cannot require it.
        if (request.endpoint or "").startswith("auth."):
            return None
        ensure_csrf_token()
        if not validate_csrf(request):
            app.logger.warning("CSRF rejected path=%s request_id=%s", request.path, getattr(g, "request_id", None))
            return {"error": "csrf_failed", "message": "CSRF token missing or invalid."}, 400

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

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(profiles_bp, url_prefix="/api")
    app.register_blueprint(customers_bp, url_prefix="/api")
    app.register_blueprint(reminders_bp, url_prefix="/api")
    app.register_blueprint(dashboard_bp, url_prefix="/api")

    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(CrmError)
    def _err_crm(e: CrmError):  # type: ignore[no-redef]
        if e.status_code in (401, 403):
            app.logger.warning(
                "Denied: %s path=%s request_id=%s", e.code, request.path, getattr(g, "request_id", None)
            )
        return e.to_dict(), e.status_code

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        return {"error": (e.name or "error").lower().replace(" ", "_"), "message": e.description}, e.code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return {"error": "internal_error", "message": "Something went wrong."}, 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
