"""
Release-phase helper.

Goal:
- With the hosted backend (BACKEND=supabase) there is nothing to migrate; just
  check that the project URL and key are present.
- With the local SQL backend: fail fast if DATABASE_URL is missing, run alembic
  migrations, then seed the demo employee (idempotent).

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _require_env(name: str) -> str:
    v = (os.environ.get(name) or "").strip()
    if not v:
        raise RuntimeError(f"Missing required environment variable {name}.")
    return v


def run_release() -> None:
    backend = (os.environ.get("BACKEND") or "sql").strip().lower()
    env = (os.environ.get("ENV") or "").strip().lower()

    print("=== RTIMS release start ===", flush=True)
    print(f"ENV={env or '(unset)'} BACKEND={backend}", flush=True)

    if backend == "supabase":
        _require_env("SUPABASE_URL")
        _require_env("SUPABASE_ANON_KEY")
        print("Hosted backend configured; no migrations to run.", flush=True)
        print("=== RTIMS release done ===", flush=True)
        return

    db_url = _require_env("DATABASE_URL")
    # Guardrail: prevent accidental prod deploys against SQLite.
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")

    print("Running Alembic migrations...", flush=True)
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")
    print("Migrations complete.", flush=True)

    print("Seeding demo employee (idempotent)...", flush=True)
    from scripts import init_db

    init_db.seed_only(database_url=db_url)
    print("Seed complete.", flush=True)
    print("=== RTIMS release done ===", flush=True)


def main() -> None:
    run_release()


if __name__ == "__main__":
    main()
