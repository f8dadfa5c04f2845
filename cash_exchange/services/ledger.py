"""
Account ledger: the only code allowed to change a balance.

Balances live in their own rows and are always locked with
``SELECT ... FOR UPDATE`` in ascending account id order before being
changed, so concurrent settlements touching the same users queue up instead
of deadlocking. Nothing here commits.
"""

import logging

from sqlalchemy import select

from ..clock import SystemClock
from ..exceptions import AccountNotFoundError, InsufficientFundsError, ValidationError
from ..models import Account, Balance, OwnerType

logger = logging.getLogger(__name__)

PLATFORM_ACCOUNT = "PLATFORM"


class AccountLedger:
    def __init__(self, db, clock=None):
        self.db = db
        self.clock = clock or SystemClock()

    def open_user_account(self, user_id, currency="INR"):
        account = Account(owner_type=OwnerType.USER, user_id=user_id, currency=currency)
        account.balance = Balance(balance=0, updated_at=self.clock.now())
        self.db.add(account)
        self.db.flush()
        return account

    def platform_account(self):
        account = self.db.execute(
            select(Account).where(Account.owner_type == OwnerType.SYSTEM, Account.system_name == PLATFORM_ACCOUNT)
        ).scalar_one_or_none()
        if account is None:
            account = Account(owner_type=OwnerType.SYSTEM, system_name=PLATFORM_ACCOUNT)
            account.balance = Balance(balance=0, updated_at=self.clock.now())
            self.db.add(account)
            self.db.flush()
        return account

    def user_account(self, user_id):
        account = self.db.execute(
            select(Account).where(Account.owner_type == OwnerType.USER, Account.user_id == user_id)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(f"No ledger account for user {user_id}", user_id=user_id)
        return account

    def balance_of(self, user_id):
        account = self.user_account(user_id)
        return self.db.execute(
            select(Balance.balance).where(Balance.account_id == account.id)
        ).scalar_one()

    def lock_balances(self, account_ids):
        """Lock the balance rows for ``account_ids``; returns {account_id: Balance}."""
        ordered = sorted(set(account_ids))
        balances = (
            self.db.execute(
                select(Balance)
                .where(Balance.account_id.in_(ordered))
                .order_by(Balance.account_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalars()
            .all()
        )
        if len(balances) != len(ordered):
            raise AccountNotFoundError("Balance record not found", account_ids=ordered)
        return {b.account_id: b for b in balances}

    def debit(self, balance, amount):
        if amount <= 0:
            raise ValidationError("Debit amount must be positive", amount=amount)
        if balance.balance < amount:
            raise InsufficientFundsError(
                f"Insufficient wallet balance. Required: {amount}, Available: {balance.balance}",
                account_id=balance.account_id,
            )
        balance.balance -= amount
        balance.updated_at = self.clock.now()
        return balance.balance

    def credit(self, balance, amount):
        if amount < 0:
            raise ValidationError("Credit amount must not be negative", amount=amount)
        balance.balance += amount
        balance.updated_at = self.clock.now()
        return balance.balance

    def deposit(self, user_id, amount):
        """Credit externally funded money to a user's wallet."""
        if amount <= 0:
            raise ValidationError("Deposit amount must be positive", amount=amount)
        account = self.user_account(user_id)
        balance = self.lock_balances([account.id])[account.id]
        new_balance = self.credit(balance, amount)
        logger.info("Deposited %s to user %s, balance now %s", amount, user_id, new_balance)
        return new_balance
