from .acceptance import AcceptanceCoordinator, AcceptResult, generate_completion_code
from .geo import GeoPoint, haversine_m
from .history import TransactionHistory
from .ledger import PLATFORM_ACCOUNT, AccountLedger
from .lifecycle import RequestLifecycle, compute_platform_fee
from .matching import MatchingEngine, NearbyFilters, PageRequest, Pagination, SearchResult
from .request_store import RequestStore
from .settlement import SettlementEngine, SettlementResult, resolve_parties
from .sweeper import LifecycleSweeper
from .exchange import ExchangeService
