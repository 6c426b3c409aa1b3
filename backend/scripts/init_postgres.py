"""
Check the PostgreSQL database for the Wordle identity service.
Run once before starting the app: python scripts/init_postgres.py

Requires: PostgreSQL installed and running. Create user and database:

  sudo -u postgres psql
  CREATE USER wordle WITH PASSWORD 'wordle';
  CREATE DATABASE wordle_users OWNER wordle;
  GRANT ALL PRIVILEGES ON DATABASE wordle_users TO wordle;
  \q

Then apply the schema with Alembic before the API starts (DB_INIT_MODE=migrate).
"""

import sys

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError

from wordle_identity.config import settings

_TABLES = ("accounts", "user_sessions", "oauth_states")


def main():
    url = settings.get_database_url()
    if not url.startswith("postgresql"):
        print("Database URL is not PostgreSQL. Skipping.")
        return
    try:
        engine = create_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            existing = set(inspect(conn).get_table_names())
    except SQLAlchemyError as e:
        print(f"Cannot connect to PostgreSQL: {e.__class__.__name__}")
        print("\nCreate database first:")
        print(f"  psql -U postgres -c \"CREATE USER {settings.POSTGRES_USER} WITH PASSWORD '...';\"")
        print(f"  psql -U postgres -c \"CREATE DATABASE {settings.POSTGRES_DB} OWNER {settings.POSTGRES_USER};\"")
        sys.exit(1)

    print("PostgreSQL connection OK. Database exists.")
    missing = [name for name in _TABLES if name not in existing]
    if missing:
        print(f"Missing tables: {', '.join(missing)}. Run the Alembic migrations.")
        sys.exit(2)
    print("Identity tables present.")


if __name__ == "__main__":
    main()
