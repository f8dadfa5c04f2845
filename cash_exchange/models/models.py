from sqlalchemy import Column, Integer, String, ForeignKey, BigInteger, Boolean, Float, Enum as SQLEnum, CheckConstraint, UniqueConstraint, Index, DateTime, Uuid, func, text
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import relationship
from datetime import timezone
import enum
import uuid
from ..db import Base


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on every backend, SQLite included."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class OwnerType(str, enum.Enum):
    USER = "USER"
    SYSTEM = "SYSTEM"


class Direction(str, enum.Enum):
    CASH_TO_ONLINE = "CASH_TO_ONLINE"
    ONLINE_TO_CASH = "ONLINE_TO_CASH"

    @property
    def opposite(self):
        if self is Direction.CASH_TO_ONLINE:
            return Direction.ONLINE_TO_CASH
        return Direction.CASH_TO_ONLINE


class RequestStatus(str, enum.Enum):
    CREATED = "CREATED"
    ACCEPTED = "ACCEPTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self):
        return not ALLOWED_TRANSITIONS[self]

    def can_transition_to(self, target):
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS = {
    RequestStatus.CREATED: frozenset({RequestStatus.ACCEPTED, RequestStatus.CANCELLED, RequestStatus.EXPIRED}),
    RequestStatus.ACCEPTED: frozenset({RequestStatus.COMPLETED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
    RequestStatus.EXPIRED: frozenset(),
}

ACTIVE_STATUSES = (RequestStatus.CREATED, RequestStatus.ACCEPTED)
TERMINAL_STATUSES = (RequestStatus.COMPLETED, RequestStatus.CANCELLED, RequestStatus.EXPIRED)


class TransactionStatus(str, enum.Enum):
    COMPLETED = "COMPLETED"
    REVERSED = "REVERSED"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), unique=True, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    completed_exchange_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now())

    account = relationship("Account", back_populates="user", uselist=False)


class Account(Base):
    __tablename__ = "accounts"
    id = Column(Integer, primary_key=True, index=True)
    owner_type = Column(SQLEnum(OwnerType), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    system_name = Column(String(64), nullable=True)
    currency = Column(String(3), nullable=False, default="INR")
    created_at = Column(UTCDateTime, server_default=func.now())

    user = relationship("User", back_populates="account")
    balance = relationship("Balance", uselist=False, back_populates="account")

    __table_args__ = (
        CheckConstraint(
            "(owner_type = 'USER' AND user_id IS NOT NULL AND system_name IS NULL) OR "
            "(owner_type = 'SYSTEM' AND system_name IS NOT NULL AND user_id IS NULL)",
            name="owner_check"
        ),
        UniqueConstraint("owner_type", "user_id", "system_name", name="uq_owner"),
    )


class Balance(Base):
    __tablename__ = "balances"
    account_id = Column(Integer, ForeignKey("accounts.id"), primary_key=True)
    balance = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(UTCDateTime, server_default=func.now())

    account = relationship("Account", back_populates="balance")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_positive"),
    )


class ExchangeRequest(Base):
    __tablename__ = "exchange_requests"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    helper_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    amount = Column(BigInteger, nullable=False)
    direction = Column(SQLEnum(Direction), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    status = Column(SQLEnum(RequestStatus), nullable=False, default=RequestStatus.CREATED, index=True)
    linked_request_id = Column(Uuid, ForeignKey("exchange_requests.id", ondelete="SET NULL"), nullable=True)
    completion_code = Column(String(6), nullable=True)
    platform_fee = Column(BigInteger, nullable=False, default=0)
    view_count = Column(Integer, nullable=False, default=0)
    notes = Column(String(500), nullable=True)
    expires_at = Column(UTCDateTime, nullable=False, index=True)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)
    accepted_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)

    requester = relationship("User", foreign_keys=[requester_id])
    helper = relationship("User", foreign_keys=[helper_id])

    __table_args__ = (
        CheckConstraint("amount > 0", name="request_amount_positive"),
        CheckConstraint("platform_fee >= 0 AND platform_fee < amount", name="request_fee_range"),
        CheckConstraint(
            "(helper_id IS NULL AND completion_code IS NULL) OR "
            "(helper_id IS NOT NULL AND completion_code IS NOT NULL)",
            name="helper_code_paired"
        ),
        CheckConstraint("helper_id IS NULL OR helper_id <> requester_id", name="no_self_help"),
        Index(
            "uq_one_active_request_per_user", "requester_id", unique=True,
            postgresql_where=text("status IN ('CREATED', 'ACCEPTED')"),
            sqlite_where=text("status IN ('CREATED', 'ACCEPTED')"),
        ),
        Index("ix_exchange_requests_lat_lng", "latitude", "longitude"),
    )

    def is_expired(self, now):
        return self.expires_at <= now


class Transaction(Base):
    __tablename__ = "transactions"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Plain references: the requests may be purged once terminal, the record may not.
    exchange_request_id = Column(Uuid, nullable=False, unique=True)
    linked_request_id = Column(Uuid, nullable=True)
    payer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    payee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    direction = Column(SQLEnum(Direction), nullable=False)
    amount = Column(BigInteger, nullable=False)
    platform_fee = Column(BigInteger, nullable=False, default=0)
    net_amount = Column(BigInteger, nullable=False)
    payer_balance_before = Column(BigInteger, nullable=False)
    payer_balance_after = Column(BigInteger, nullable=False)
    payee_balance_before = Column(BigInteger, nullable=False)
    payee_balance_after = Column(BigInteger, nullable=False)
    status = Column(SQLEnum(TransactionStatus), nullable=False, default=TransactionStatus.COMPLETED, index=True)
    completed_at = Column(UTCDateTime, nullable=False)
    reversed_at = Column(UTCDateTime, nullable=True)
    reversal_reason = Column(String(500), nullable=True)
    created_at = Column(UTCDateTime, nullable=False)

    entries = relationship("LedgerEntry", back_populates="transaction", cascade="all, delete-orphan", order_by="LedgerEntry.id")
    payer = relationship("User", foreign_keys=[payer_id])
    payee = relationship("User", foreign_keys=[payee_id])

    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint("platform_fee >= 0", name="fee_non_negative"),
        CheckConstraint("net_amount = amount - platform_fee", name="net_amount_matches"),
    )


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True, autoincrement=True)
    transaction_id = Column(Uuid, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    amount = Column(BigInteger, nullable=False)
    created_at = Column(UTCDateTime, server_default=func.now())

    transaction = relationship("Transaction", back_populates="entries")
