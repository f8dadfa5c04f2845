from .models import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    Account,
    Balance,
    Direction,
    ExchangeRequest,
    LedgerEntry,
    OwnerType,
    RequestStatus,
    Transaction,
    TransactionStatus,
    User,
)
