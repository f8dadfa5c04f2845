import logging

from ..models import User
from .geo import GeoPoint
from .ledger import AccountLedger

logger = logging.getLogger(__name__)


def register_user(db, username, location: GeoPoint = None, ledger=None, currency="INR"):
    """Provision a user row and its wallet account. Caller commits."""
    ledger = ledger or AccountLedger(db)
    user = User(
        username=username,
        latitude=location.latitude if location else None,
        longitude=location.longitude if location else None,
        completed_exchange_count=0,
        is_active=True,
    )
    db.add(user)
    db.flush()
    ledger.open_user_account(user.id, currency=currency)
    logger.info("Registered user %s (%s)", user.id, username)
    return user

