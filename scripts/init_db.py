import os
import sys
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

# Add the project root to the python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cash_exchange.db import DATABASE_URL, Base, engine, SessionLocal
from cash_exchange import models  # noqa: F401  registers tables on Base
from cash_exchange.services import AccountLedger


def init_db():
    print(f"Connecting to: {DATABASE_URL}")
    try:
        exists = inspect(engine).has_table("exchange_requests")
        if not exists:
            print("Database not initialized. Creating tables...")
            Base.metadata.create_all(bind=engine)
        else:
            print("Tables already present. Skipping schema setup.")

        with SessionLocal() as db:
            AccountLedger(db).platform_account()
            db.commit()
        print("Database initialization complete.")
    except SQLAlchemyError as e:
        print(f"Error during database initialization: {e}")
        sys.exit(1)


if __name__ == "__main__":
    init_db()
