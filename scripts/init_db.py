import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.rtims.db import make_engine, make_sessionmaker, session_scope  # noqa: E402
from app.rtims.logging_config import configure_logging  # noqa: E402
from app.rtims.models import AuthUser, Base, EmployeeRow  # noqa: E402


def seed_only(*, database_url: str | None = None, create_tables: bool = False) -> None:
    """
    Seed the demo employee account for the local SQL backend in an idempotent way.
    Does NOT overwrite an existing user's password.
    """
    email = (os.environ.get("DEMO_EMAIL") or "employe@rtims-consulting.fr").strip().lower()
    password = os.environ.get("DEMO_PASSWORD") or "change-me"
    name = (os.environ.get("DEMO_NAME") or "Employé Démo").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///rtims.db").strip()
    engine = make_engine(db_url, env=(os.environ.get("ENV") or "development"))
    try:
        if create_tables:
            Base.metadata.create_all(bind=engine)

        with session_scope(make_sessionmaker(engine)) as s:
            user = s.query(AuthUser).filter(AuthUser.email == email).one_or_none()
            if not user:
                user = AuthUser(email=email, password_hash=generate_password_hash(password))
                s.add(user)
                s.flush()
            employee = s.query(EmployeeRow).filter(EmployeeRow.user_id == user.id).one_or_none()
            if not employee:
                s.add(EmployeeRow(user_id=user.id, name=name))
    finally:
        engine.dispose()

    print("Initialized database (seed_only).")
    print(f"Demo email: {email}")
    print("Demo password: (from DEMO_PASSWORD)")


def main() -> None:
    configure_logging(os.environ.get("LOG_LEVEL") or "INFO")
    seed_only(database_url=None, create_tables="--create-tables" in sys.argv[1:])


if __name__ == "__main__":
    main()
