from flask import Blueprint, current_app
from sqlalchemy import text

from app.crm.db import db_session

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return {"service": "crm", "env": current_app.config.get("ENV")}


@bp.get("/health")
def health():
    """Health check endpoint with a DB round trip. Returns JSON."""
    ok = True
    try:
        db_session().execute(text("SELECT 1"))
    except Exception as e:
        current_app.logger.error("Health check DB error: %s", e)
        ok = False
    return {"ok": ok, "db": ok}, (200 if ok else 503)


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200
