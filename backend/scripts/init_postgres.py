"""
Check the PostgreSQL database for the job board API.
Run once before applying migrations: python scripts/init_postgres.py

Requires: PostgreSQL installed and running. Create user and database:

  sudo -u postgres psql
  CREATE USER jobboard WITH PASSWORD 'jobboard';
  CREATE DATABASE jobboard_db OWNER jobboard;
  GRANT ALL PRIVILEGES ON DATABASE jobboard_db TO jobboard;
  \q
"""

import sys

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from jobboard.config import settings


def main():
    url = settings.get_database_url()
    if not url.startswith("postgresql"):
        print("Database URL is not PostgreSQL. Skipping.")
        return
    try:
        engine = create_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("PostgreSQL connection OK. Database exists.")
    except SQLAlchemyError as e:
        print(f"Cannot connect to PostgreSQL: {e}")
        print("\nCreate database first:")
        print("  psql -U postgres -c \"CREATE USER jobboard WITH PASSWORD 'jobboard';\"")
        print("  psql -U postgres -c \"CREATE DATABASE jobboard_db OWNER jobboard;\"")
        print("  psql -U postgres -c \"GRANT ALL PRIVILEGES ON DATABASE jobboard_db TO jobboard;\"")
        sys.exit(1)


if __name__ == "__main__":
    main()
