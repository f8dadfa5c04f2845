"""Run the expiry and cleanup sweeps once; schedule with cron."""
import argparse
import os
import sys

from dotenv import load_dotenv

load_dotenv()

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cash_exchange.db import SessionLocal
from cash_exchange.exceptions import InternalError
from cash_exchange.logging_config import configure_logging
from cash_exchange.services import LifecycleSweeper


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--expire-only", action="store_true", help="skip purging old terminal requests")
    parser.add_argument("--purge-days", type=int, default=None, help="override PURGE_AFTER_DAYS")
    args = parser.parse_args(argv)

    configure_logging()
    with SessionLocal() as db:
        sweeper = LifecycleSweeper(db)
        try:
            sweeper.expire_stale()
            if not args.expire_only:
                sweeper.purge_terminal(args.purge_days)
        except InternalError as e:
            print(f"Sweep failed: {e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
