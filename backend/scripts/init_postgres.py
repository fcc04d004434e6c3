"""
Check that the PostgreSQL database for authgate is reachable.
Run once before `alembic upgrade head`: python scripts/init_postgres.py

Create the role and database first:

  sudo -u postgres psql
  CREATE USER authgate WITH PASSWORD 'authgate';
  CREATE DATABASE authgate_db OWNER authgate;
  \q
"""

import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import text  # noqa: E402
from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from authgate.config import settings  # noqa: E402
from authgate.core.database import build_engine  # noqa: E402


def main():
    url = settings.get_database_url()
    if not url.startswith("postgresql"):
        print("DATABASE_URL is not PostgreSQL. Nothing to check.")
        return
    try:
        engine = build_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            lock_timeout = conn.execute(text("SHOW lock_timeout")).scalar()
        print(f"PostgreSQL connection OK (lock_timeout={lock_timeout}).")
        print("Next: alembic upgrade head")
    except SQLAlchemyError as e:
        print(f"Cannot connect to PostgreSQL: {e}")
        print("\nCreate the database first:")
        print("  psql -U postgres -c \"CREATE USER authgate WITH PASSWORD 'authgate';\"")
        print("  psql -U postgres -c \"CREATE DATABASE authgate_db OWNER authgate;\"")
        sys.exit(1)


if __name__ == "__main__":
    main()
