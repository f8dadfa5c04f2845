"""
Settlement of accepted exchanges.

``complete`` runs as one database transaction: target and linked request are
locked, the payer is debited, payee and platform are credited, the
transaction record and its ledger entries are written and both requests are
moved to COMPLETED. Any failure rolls the whole unit back.
"""

import hmac
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..clock import SystemClock
from ..exceptions import (
    ExchangeError,
    InternalError,
    InvalidCompletionCodeError,
    NotAssignedHelperError,
    RequestNotAcceptedError,
    RequestNotFoundError,
    TransactionNotFoundError,
    TransactionNotReversibleError,
    UserNotFoundError,
)
from ..models import Direction, ExchangeRequest, LedgerEntry, RequestStatus, Transaction, TransactionStatus, User
from .ledger import AccountLedger
from .request_store import RequestStore

logger = logging.getLogger(__name__)


def resolve_parties(request):
    """
    Return (payer_id, payee_id) for an accepted target request.

    The side that hands over cash in person is paid electronically: a
    CASH_TO_ONLINE requester is paid by the helper, an ONLINE_TO_CASH
    requester pays the helper.
    """
    if request.direction is Direction.CASH_TO_ONLINE:
        return request.helper_id, request.requester_id
    return request.requester_id, request.helper_id


@dataclass
class SettlementResult:
    request: ExchangeRequest
    transaction: Transaction


class SettlementEngine:
    def __init__(self, db, clock=None, store=None, ledger=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.store = store or RequestStore(db, self.clock)
        self.ledger = ledger or AccountLedger(db, self.clock)

    @staticmethod
    def _check(request, acting_user_id, supplied_code):
        if request.helper_id is None or request.helper_id != acting_user_id:
            raise NotAssignedHelperError()
        if request.status != RequestStatus.ACCEPTED:
            raise RequestNotAcceptedError(
                f"This request cannot be completed from status {request.status.value}",
                request_id=str(request.id),
            )
        stored = request.completion_code or ""
        if not hmac.compare_digest(str(supplied_code).encode(), stored.encode()):
            raise InvalidCompletionCodeError()

    def complete(self, target_request_id, acting_user_id, supplied_code):
        try:
            request = self.store.get(target_request_id)
            if request is None:
                raise RequestNotFoundError(request_id=str(target_request_id))
            self._check(request, acting_user_id, supplied_code)

            result = self._settle(target_request_id, acting_user_id, supplied_code)
            self.db.commit()
        except ExchangeError:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Settlement of request %s failed and was rolled back", target_request_id)
            raise InternalError("Transaction failed")

        logger.info(
            "Exchange settled: request=%s transaction=%s payer=%s payee=%s amount=%s fee=%s",
            result.request.id, result.transaction.id, result.transaction.payer_id,
            result.transaction.payee_id, result.transaction.amount, result.transaction.platform_fee,
        )
        return result

    def _settle(self, target_request_id, acting_user_id, supplied_code):
        now = self.clock.now()

        # Re-check under the row lock: a concurrent or replayed complete sees COMPLETED here.
        request = self.store.get_for_update(target_request_id)
        self._check(request, acting_user_id, supplied_code)
        linked = self.store.get_for_update(request.linked_request_id) if request.linked_request_id else None
        if linked is None or linked.status != RequestStatus.ACCEPTED or linked.linked_request_id != request.id:
            logger.error("Request %s has no settleable linked request (%s)", request.id, request.linked_request_id)
            raise InternalError(
                "Linked request is not in a settleable state", request_id=str(request.id)
            )

        payer_id, payee_id = resolve_parties(request)
        amount = request.amount
        fee = request.platform_fee
        net_amount = amount - fee

        payer_account = self.ledger.user_account(payer_id)
        payee_account = self.ledger.user_account(payee_id)
        account_ids = [payer_account.id, payee_account.id]
        platform_account = None
        if fee:
            # Fee account is only locked when a fee moves.
            platform_account = self.ledger.platform_account()
            account_ids.append(platform_account.id)
        balances = self.ledger.lock_balances(account_ids)
        payer_balance = balances[payer_account.id]
        payee_balance = balances[payee_account.id]

        payer_before = payer_balance.balance
        payee_before = payee_balance.balance

        self.ledger.debit(payer_balance, amount)
        self.ledger.credit(payee_balance, net_amount)
        if fee:
            self.ledger.credit(balances[platform_account.id], fee)

        transaction = Transaction(
            exchange_request_id=request.id,
            linked_request_id=linked.id,
            payer_id=payer_id,
            payee_id=payee_id,
            direction=request.direction,
            amount=amount,
            platform_fee=fee,
            net_amount=net_amount,
            payer_balance_before=payer_before,
            payer_balance_after=payer_balance.balance,
            payee_balance_before=payee_before,
            payee_balance_after=payee_balance.balance,
            status=TransactionStatus.COMPLETED,
            completed_at=now,
            created_at=now,
        )
        transaction.entries.extend([
            LedgerEntry(account_id=payer_account.id, amount=-amount),
            LedgerEntry(account_id=payee_account.id, amount=net_amount),
        ])
        if fee:
            transaction.entries.append(LedgerEntry(account_id=platform_account.id, amount=fee))
        self.db.add(transaction)

        self.store.transition(request, RequestStatus.COMPLETED, now)
        self.store.transition(linked, RequestStatus.COMPLETED, now)

        users = self.db.execute(
            select(User).where(User.id.in_([request.requester_id, request.helper_id])).with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        if len(users) != 2:
            raise UserNotFoundError("Exchange participant not found", request_id=str(request.id))
        for user in users:
            user.completed_exchange_count = (user.completed_exchange_count or 0) + 1

        self.db.flush()
        return SettlementResult(request=request, transaction=transaction)

    def reverse(self, transaction_id, reason):
        """Undo a completed settlement's balance movements and mark it REVERSED."""
        try:
            transaction = self.db.execute(
                select(Transaction).where(Transaction.id == transaction_id).with_for_update()
            ).scalar_one_or_none()
            if transaction is None:
                raise TransactionNotFoundError(transaction_id=str(transaction_id))
            if transaction.status != TransactionStatus.COMPLETED:
                raise TransactionNotReversibleError(transaction_id=str(transaction_id))

            now = self.clock.now()
            payer_account = self.ledger.user_account(transaction.payer_id)
            payee_account = self.ledger.user_account(transaction.payee_id)
            account_ids = [payer_account.id, payee_account.id]
            if transaction.platform_fee:
                platform_account = self.ledger.platform_account()
                account_ids.append(platform_account.id)
            balances = self.ledger.lock_balances(account_ids)

            self.ledger.debit(balances[payee_account.id], transaction.net_amount)
            if transaction.platform_fee:
                self.ledger.debit(balances[platform_account.id], transaction.platform_fee)
            self.ledger.credit(balances[payer_account.id], transaction.amount)

            transaction.entries.extend([
                LedgerEntry(account_id=payee_account.id, amount=-transaction.net_amount),
                LedgerEntry(account_id=payer_account.id, amount=transaction.amount),
            ])
            if transaction.platform_fee:
                transaction.entries.append(
                    LedgerEntry(account_id=platform_account.id, amount=-transaction.platform_fee)
                )
            transaction.status = TransactionStatus.REVERSED
            transaction.reversed_at = now
            transaction.reversal_reason = reason
            self.db.commit()
        except ExchangeError:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Reversal of transaction %s failed", transaction_id)
            raise InternalError("Reversal failed")

        logger.info("Transaction %s reversed: %s", transaction_id, reason)
        return transaction
