import logging

from sqlalchemy.exc import SQLAlchemyError

from ..clock import SystemClock
from ..config import get_settings
from ..exceptions import InternalError
from .request_store import RequestStore

logger = logging.getLogger(__name__)


class LifecycleSweeper:
    """Time-driven housekeeping: expire stale CREATED requests, purge old terminal ones."""

    def __init__(self, db, clock=None, settings=None, store=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.store = store or RequestStore(db, self.clock)

    def expire_stale(self):
        try:
            count = self.store.expire_stale(self.clock.now())
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error in expiry sweep")
            raise InternalError("Expiry sweep failed")
        logger.info("Expired requests updated: %s", count)
        return count

    def purge_terminal(self, older_than_days=None):
        days = older_than_days if older_than_days is not None else self.settings.purge_after_days
        try:
            count = self.store.purge_terminal(self.clock.now(), days)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error in cleanup sweep")
            raise InternalError("Cleanup sweep failed")
        logger.info("Old requests cleaned up: %s", count)
        return count

    def run(self):
        return {"expired": self.expire_stale(), "purged": self.purge_terminal()}
