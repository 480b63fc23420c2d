from flask import Blueprint

from app.crm.db import db_session
from app.crm.modules.customers.admin import interaction_json
from app.crm.modules.dashboard.service import dashboard_summary
from app.crm.ownership import current_user, require_login

bp = Blueprint("dashboard", __name__)


@bp.get("/dashboard")
@require_login
def index():
    s = db_session()
    summary = dashboard_summary(s, current_user())
    summary["recent_interactions"] = [interaction_json(i) for i in summary["recent_interactions"]]
    return summary
