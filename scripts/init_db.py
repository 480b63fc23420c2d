import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.crm.identity import normalize_email, register_user
from app.crm.models import User
from scripts._db_utils import script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Create the demo account when DEMO_EMAIL/DEMO_PASSWORD are set.
    Idempotent: an existing account is left untouched (password included).
    """
    email = normalize_email(os.environ.get("DEMO_EMAIL"))
    password = os.environ.get("DEMO_PASSWORD") or ""
    if not email or not password:
        print("DEMO_EMAIL/DEMO_PASSWORD not set; skipping demo account.", flush=True)
        return

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///crm.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        if s.query(User.id).filter(User.email == email).first() is not None:
            print(f"Demo account {email} already exists.", flush=True)
            return
        register_user(
            s,
            email=email,
            password=password,
            full_name=os.environ.get("DEMO_FULL_NAME") or "Demo",
            business_name=os.environ.get("DEMO_BUSINESS_NAME"),
        )
        print(f"Created demo account {email}.", flush=True)


def main() -> None:
    from app.crm.db import build_engine
    from app.crm.models import Base

    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///crm.db").strip()
    engine = build_engine(db_url)
    Base.metadata.create_all(bind=engine)
    engine.dispose()
    seed_only(database_url=db_url)


if __name__ == "__main__":
    main()
