"""
Create the schema from the ORM metadata and optionally seed a first user.

Usage:
  python scripts/init_db.py

Seeding is driven by SEED_USER_EMAIL / SEED_USER_PASSWORD (plus optional
SEED_USER_FIRST_NAME / SEED_USER_LAST_NAME) and never overwrites an existing user.
"""
from __future__ import annotations

import os
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.taskmanager.models import Base, User  # noqa: E402


@contextmanager
def _session_scope(database_url: str):
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    Base.metadata.create_all(bind=engine)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


def init_db(*, database_url: str | None = None) -> None:
    """
    Idempotent: creates missing tables, seeds the optional user once.
    """
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///taskmanager.db").strip()
    seed_email = (os.environ.get("SEED_USER_EMAIL") or "").strip().lower()
    seed_password = os.environ.get("SEED_USER_PASSWORD") or ""

    with _session_scope(db_url) as s:
        if seed_email and seed_password:
            user = s.query(User).filter(User.email == seed_email).one_or_none()
            if not user:
                now = datetime.utcnow()
                s.add(
                    User(
                        first_name=(os.environ.get("SEED_USER_FIRST_NAME") or "Admin").strip(),
                        last_name=(os.environ.get("SEED_USER_LAST_NAME") or "User").strip(),
                        email=seed_email,
                        password_hash=generate_password_hash(seed_password),
                        created_at=now,
                        updated_at=now,
                    )
                )
                print(f"Seeded user: {seed_email}", flush=True)

    print("Initialized database.", flush=True)


def main() -> None:
    load_dotenv()
    env = (os.environ.get("ENV") or "").strip().lower()
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    # Guardrail: prevent accidental prod deploys against SQLite.
    if env in ("prod", "production") and (not db_url or db_url.startswith("sqlite")):
        raise RuntimeError("Refusing to initialize sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")
    init_db(database_url=db_url or None)


if __name__ == "__main__":
    main()
