"""
Pytest fixtures for the cash exchange test suite.

Each test gets its own SQLite database file (WAL mode, math functions
registered by ``cash_exchange.db``), a fixed clock and helpers for creating
users with funded wallets.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./cash_exchange_dev.db")

from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from cash_exchange.clock import FixedClock
from cash_exchange.config import ExchangeSettings
from cash_exchange.db import Base, make_engine
from cash_exchange import models  # noqa: F401
from cash_exchange.models import Direction
from cash_exchange.services import AccountLedger, ExchangeService, GeoPoint
from cash_exchange.services.users import register_user

# Bangalore, roughly 60m apart.
P1 = GeoPoint(12.9716, 77.5946)
P2 = GeoPoint(12.9720, 77.5950)
FAR = GeoPoint(13.0827, 80.2707)  # Chennai

START = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'exchange.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    AccountLedger(session).platform_account()
    session.commit()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def settings():
    return ExchangeSettings()


@pytest.fixture
def service(db, clock, settings):
    return ExchangeService(db, clock=clock, settings=settings)


@pytest.fixture
def ledger(db, clock):
    return AccountLedger(db, clock)


@pytest.fixture
def make_user(db, clock):
    counter = {"n": 0}

    def _make_user(username=None, balance=0, location=P1):
        counter["n"] += 1
        ledger = AccountLedger(db, clock)
        user = register_user(db, username or f"user{counter['n']}", location, ledger=ledger)
        if balance:
            ledger.deposit(user.id, balance)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def scenario(service, make_user):
    """Requester A with a CASH_TO_ONLINE 500 at P1, helper B with ONLINE_TO_CASH 1500 at P2."""
    alice = make_user("alice", balance=0, location=P1)
    bob = make_user("bob", balance=2000, location=P2)
    alice_request = service.create_request(alice.id, 500, Direction.CASH_TO_ONLINE, P1)
    bob_request = service.create_request(bob.id, 1500, Direction.ONLINE_TO_CASH, P2)
    return alice, bob, alice_request, bob_request
