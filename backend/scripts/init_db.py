"""Initialize the BuildLink database - creates (or recreates) all tables."""
import argparse
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from buildlink.config import settings
from buildlink.database import engine, Base
import buildlink.models  # noqa: F401 - registers all models


def init_db(reset: bool = False):
    if reset:
        print(f"Dropping all tables on {settings.DATABASE_URL} ...")
        Base.metadata.drop_all(bind=engine)
    print("Creating all database tables...")
    Base.metadata.create_all(bind=engine)
    print(f"Database initialized with {len(Base.metadata.tables)} tables.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create BuildLink tables")
    parser.add_argument("--reset", action="store_true", help="drop existing tables first (loses all data)")
    args = parser.parse_args()
    init_db(reset=args.reset)
