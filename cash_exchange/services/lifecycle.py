import logging
import math
from datetime import timedelta
from decimal import ROUND_FLOOR, Decimal

from sqlalchemy import or_, select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..clock import SystemClock
from ..config import get_settings
from ..exceptions import (
    ActiveRequestExistsError,
    ExchangeError,
    InsufficientFundsError,
    InternalError,
    InvalidTransitionError,
    NotRequesterError,
    RequestNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from ..models import Direction, ExchangeRequest, RequestStatus, User
from .geo import GeoPoint
from .ledger import AccountLedger
from .matching import PageRequest, Pagination
from .request_store import RequestStore

logger = logging.getLogger(__name__)


def compute_platform_fee(amount, fee_percent):
    """Fee in whole currency units, rounded down."""
    fee = (Decimal(amount) * Decimal(fee_percent) / 100).to_integral_value(rounding=ROUND_FLOOR)
    return int(fee)


class RequestLifecycle:
    """Requester-side operations: create, cancel and list own requests."""

    def __init__(self, db, clock=None, settings=None, store=None, ledger=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.store = store or RequestStore(db, self.clock)
        self.ledger = ledger or AccountLedger(db, self.clock)

    def _validate(self, amount, direction, expiry_minutes, notes):
        s = self.settings
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("Amount must be a whole number", amount=amount)
        if not s.min_amount <= amount <= s.max_amount:
            raise ValidationError(f"Amount must be between {s.min_amount} and {s.max_amount}", amount=amount)
        try:
            direction = Direction(direction)
        except ValueError:
            raise ValidationError(f"Unknown exchange direction {direction!r}")
        if expiry_minutes is None:
            expiry_minutes = s.default_expiry_minutes
        if not s.min_expiry_minutes <= expiry_minutes <= s.max_expiry_minutes:
            raise ValidationError(
                f"Expiry time must be between {s.min_expiry_minutes} minutes and {s.max_expiry_minutes} minutes"
            )
        if notes is not None and len(notes) > s.max_notes_length:
            raise ValidationError(f"Notes cannot exceed {s.max_notes_length} characters")
        return direction, expiry_minutes

    def create_request(self, actor_id, amount, direction, point: GeoPoint, expiry_minutes=None, notes=None):
        direction, expiry_minutes = self._validate(amount, direction, expiry_minutes, notes)
        now = self.clock.now()
        try:
            # Serialises concurrent creates by the same user.
            user = self.db.execute(
                select(User).where(User.id == actor_id).with_for_update()
            ).scalar_one_or_none()
            if user is None:
                raise UserNotFoundError(user_id=actor_id)

            self.store.expire_stale(now, requester_id=actor_id)
            if self.store.active_request_for(actor_id) is not None:
                raise ActiveRequestExistsError()

            if direction is Direction.ONLINE_TO_CASH:
                available = self.ledger.balance_of(actor_id)
                if available < amount:
                    raise InsufficientFundsError(
                        f"Insufficient wallet balance. You need {amount} but have {available}",
                        required=amount,
                        available=available,
                    )

            request = self.store.add(ExchangeRequest(
                requester_id=actor_id,
                amount=amount,
                direction=direction,
                latitude=point.latitude,
                longitude=point.longitude,
                status=RequestStatus.CREATED,
                platform_fee=compute_platform_fee(amount, self.settings.platform_fee_percent),
                notes=notes or None,
                expires_at=now + timedelta(minutes=expiry_minutes),
            ))
            self.db.commit()
        except ExchangeError:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            # Lost a race against another create for the same user.
            if self.store.active_request_for(actor_id) is not None:
                raise ActiveRequestExistsError()
            logger.exception("Constraint violation while creating exchange request for user %s", actor_id)
            raise InternalError("Could not create exchange request")
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error while creating exchange request for user %s", actor_id)
            raise InternalError("Could not create exchange request")

        logger.info(
            "Exchange request created: request=%s user=%s amount=%s direction=%s",
            request.id, actor_id, amount, direction.value,
        )
        return request

    def cancel(self, actor_id, request_id):
        now = self.clock.now()
        try:
            request = self.store.get(request_id)
            if request is None:
                raise RequestNotFoundError(request_id=str(request_id))
            if request.requester_id != actor_id:
                raise NotRequesterError()
            if not self.store.cancel_if_created(request_id, actor_id, now):
                self.db.rollback()
                self.db.refresh(request)
                raise InvalidTransitionError(
                    f"Only CREATED requests can be cancelled; this one is {request.status.value}",
                    request_id=str(request_id),
                )
            self.db.commit()
            self.db.refresh(request)
        except ExchangeError:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error while cancelling request %s", request_id)
            raise InternalError("Could not cancel exchange request")

        logger.info("Exchange request %s cancelled by user %s", request_id, actor_id)
        return request

    def list_my_requests(self, actor_id, status=None, page=None):
        page = page or PageRequest(limit=self.settings.default_search_limit)

        conditions = [or_(ExchangeRequest.requester_id == actor_id, ExchangeRequest.helper_id == actor_id)]
        if status is not None:
            conditions.append(ExchangeRequest.status == RequestStatus(status))

        total = self.db.execute(
            select(func.count()).select_from(ExchangeRequest).where(*conditions)
        ).scalar_one()
        requests = self.db.execute(
            select(ExchangeRequest)
            .where(*conditions)
            .order_by(ExchangeRequest.created_at.desc())
            .offset(page.offset)
            .limit(page.limit)
        ).scalars().all()
        return requests, Pagination(
            page=page.page,
            limit=page.limit,
            total=total,
            total_pages=math.ceil(total / page.limit) if total else 0,
        )
