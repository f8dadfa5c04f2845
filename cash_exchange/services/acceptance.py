"""
Acceptance of an exchange request by a helper.

Acceptance touches two rows in one transaction:

1. the target is claimed with a conditional UPDATE (still CREATED, no helper,
   not expired). When several helpers race for the same request, this is the
   write that decides the winner;
2. the helper's own request is moved to ACCEPTED and linked back to the
   target, guarded the same way. If it was claimed, cancelled or expired in
   the meantime the whole acceptance is rolled back.

Both writes commit together or not at all, so a target is never left
accepted against a helper request that is not.
"""

import logging
import secrets
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from ..clock import SystemClock
from ..exceptions import (
    AmountMismatchError,
    DirectionMismatchError,
    ExchangeError,
    HelperBusyError,
    InternalError,
    NoActiveRequestError,
    RequestNotFoundError,
    RequestUnavailableError,
    SelfAcceptError,
)
from ..models import ExchangeRequest, RequestStatus
from .request_store import RequestStore

logger = logging.getLogger(__name__)

COMPLETION_CODE_DIGITS = 6


def generate_completion_code():
    """Uniform random code in 000000..999999, kept as a zero-padded string."""
    return f"{secrets.randbelow(10 ** COMPLETION_CODE_DIGITS):0{COMPLETION_CODE_DIGITS}d}"


@dataclass
class AcceptResult:
    request: ExchangeRequest
    completion_code: str
    helper_request: ExchangeRequest


class AcceptanceCoordinator:
    def __init__(self, db, clock=None, store=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.store = store or RequestStore(db, self.clock)

    def _check_preconditions(self, target_request_id, helper_user_id, now):
        """Run the ordered checks; returns (target, helper_request)."""
        if self.store.has_exchange_in_progress(helper_user_id):
            raise HelperBusyError(
                "You already have an exchange in progress. Complete it before accepting another"
            )

        target = self.store.get(target_request_id)
        if target is None:
            raise RequestNotFoundError(request_id=str(target_request_id))

        if target.requester_id == helper_user_id:
            raise SelfAcceptError()

        if target.status != RequestStatus.CREATED or target.is_expired(now):
            raise RequestUnavailableError(request_id=str(target.id))

        helper_request = self.store.open_request_for(helper_user_id, now)
        if helper_request is None:
            raise NoActiveRequestError("You need your own active exchange request to accept one")

        if helper_request.direction != target.direction.opposite:
            raise DirectionMismatchError(
                f"A {target.direction.value} request can only be matched by a "
                f"{target.direction.opposite.value} request"
            )

        if helper_request.amount < target.amount:
            raise AmountMismatchError(
                f"Your request amount {helper_request.amount} does not cover {target.amount}"
            )
        return target, helper_request

    def accept(self, target_request_id, helper_user_id):
        try:
            now = self.clock.now()
            target, helper_request = self._check_preconditions(target_request_id, helper_user_id, now)

            code = generate_completion_code()
            claimed = self.store.claim(target.id, helper_user_id, helper_request.id, code, now)
            if not claimed:
                self.db.rollback()
                logger.info(
                    "Accept lost to a concurrent change: request=%s helper=%s", target_request_id, helper_user_id
                )
                raise RequestUnavailableError(
                    "Cannot accept this request. It may have been accepted by someone else already",
                    request_id=str(target_request_id),
                )
            if not self.store.link_helper_request(helper_request.id, helper_user_id, target.id, now):
                logger.info(
                    "Accept abandoned, helper request %s is no longer open: request=%s", helper_request.id, target.id
                )
                raise NoActiveRequestError("Your own exchange request is no longer open")
            self.db.commit()
        except ExchangeError:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error while accepting request %s", target_request_id)
            raise InternalError("Accepting the request failed")

        logger.info("Request %s accepted by user %s", target.id, helper_user_id)
        self.db.refresh(target)
        self.db.refresh(helper_request)
        return AcceptResult(request=target, completion_code=code, helper_request=helper_request)

