"""
Actor-facing entry points of the exchange core.

Each call takes the authenticated actor id first and delegates to the
component that owns the operation.
"""

from ..clock import SystemClock
from ..config import get_settings
from .acceptance import AcceptanceCoordinator
from .ledger import AccountLedger
from .lifecycle import RequestLifecycle
from .matching import MatchingEngine
from .request_store import RequestStore
from .settlement import SettlementEngine


class ExchangeService:
    def __init__(self, db, clock=None, settings=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.store = RequestStore(db, self.clock)
        self.ledger = AccountLedger(db, self.clock)
        self.lifecycle = RequestLifecycle(db, self.clock, self.settings, self.store, self.ledger)
        self.matching = MatchingEngine(db, self.clock, self.settings, self.store)
        self.acceptance = AcceptanceCoordinator(db, self.clock, self.store)
        self.settlement = SettlementEngine(db, self.clock, self.store, self.ledger)

    def create_request(self, actor_id, amount, direction, point, expiry_minutes=None, notes=None):
        return self.lifecycle.create_request(actor_id, amount, direction, point, expiry_minutes, notes)

    def find_nearby(self, actor_id, point, max_distance=None, filters=None, page=None):
        return self.matching.find_nearby(point, max_distance, exclude_user_id=actor_id, filters=filters, page=page)

    def find_compatible_helpers(self, actor_id, max_distance=None, page=None):
        return self.matching.find_compatible_helpers(actor_id, max_distance, page)

    def accept(self, actor_id, request_id):
        return self.acceptance.accept(request_id, actor_id)

    def complete(self, actor_id, request_id, code):
        return self.settlement.complete(request_id, actor_id, code)

    def cancel(self, actor_id, request_id):
        return self.lifecycle.cancel(actor_id, request_id)

    def my_requests(self, actor_id, status=None, page=None):
        return self.lifecycle.list_my_requests(actor_id, status, page)
