"""
Persistence and conditional writes for exchange requests.

Every status change goes through a guarded ``UPDATE ... WHERE status = ...``
so two sessions racing on the same row can never both apply; the loser sees
zero affected rows. Methods here flush or execute but never commit: the
calling component owns the unit of work.
"""

from datetime import timedelta

from sqlalchemy import select, update, delete, or_

from ..clock import SystemClock
from ..models import ACTIVE_STATUSES, TERMINAL_STATUSES, ExchangeRequest, RequestStatus
from ..exceptions import InvalidTransitionError


class RequestStore:
    def __init__(self, db, clock=None):
        self.db = db
        self.clock = clock or SystemClock()

    def add(self, request):
        now = self.clock.now()
        request.created_at = now
        request.updated_at = now
        self.db.add(request)
        self.db.flush()
        return request

    def get(self, request_id):
        return self.db.get(ExchangeRequest, request_id)

    def get_for_update(self, request_id):
        stmt = (
            select(ExchangeRequest)
            .where(ExchangeRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def active_request_for(self, user_id):
        stmt = select(ExchangeRequest).where(
            ExchangeRequest.requester_id == user_id,
            ExchangeRequest.status.in_(ACTIVE_STATUSES),
        )
        return self.db.execute(stmt).scalars().first()

    def open_request_for(self, user_id, now):
        """The user's CREATED, unexpired request, if any."""
        stmt = select(ExchangeRequest).where(
            ExchangeRequest.requester_id == user_id,
            ExchangeRequest.status == RequestStatus.CREATED,
            ExchangeRequest.expires_at > now,
        )
        return self.db.execute(stmt).scalars().first()

    def has_exchange_in_progress(self, user_id):
        """ACCEPTED either as the requester or as the assigned helper."""
        stmt = select(ExchangeRequest.id).where(
            ExchangeRequest.status == RequestStatus.ACCEPTED,
            or_(ExchangeRequest.requester_id == user_id, ExchangeRequest.helper_id == user_id),
        )
        return self.db.execute(stmt).first() is not None

    def claim(self, target_id, helper_id, helper_request_id, completion_code, now):
        """
        Assign the helper to ``target_id`` if it is still unclaimed.

        Returns False when another writer got there first, or the request was
        cancelled or expired in the meantime.
        """
        stmt = (
            update(ExchangeRequest)
            .where(
                ExchangeRequest.id == target_id,
                ExchangeRequest.status == RequestStatus.CREATED,
                ExchangeRequest.helper_id.is_(None),
                ExchangeRequest.expires_at > now,
            )
            .values(
                helper_id=helper_id,
                status=RequestStatus.ACCEPTED,
                completion_code=completion_code,
                linked_request_id=helper_request_id,
                accepted_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def link_helper_request(self, helper_request_id, helper_id, target_id, now):
        """
        Move the helper's own request to ACCEPTED, pointing at ``target_id``.

        Applies only while that request is still the helper's open one:
        CREATED, unclaimed and unexpired. Returns False otherwise.
        """
        stmt = (
            update(ExchangeRequest)
            .where(
                ExchangeRequest.id == helper_request_id,
                ExchangeRequest.requester_id == helper_id,
                ExchangeRequest.status == RequestStatus.CREATED,
                ExchangeRequest.helper_id.is_(None),
                ExchangeRequest.expires_at > now,
            )
            .values(
                status=RequestStatus.ACCEPTED,
                linked_request_id=target_id,
                accepted_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def transition(self, request, new_status, now):
        """Apply a state machine step to a loaded (and locked) request."""
        if not request.status.can_transition_to(new_status):
            raise InvalidTransitionError(
                f"Cannot move request from {request.status.value} to {new_status.value}",
                request_id=str(request.id),
            )
        request.status = new_status
        request.updated_at = now
        if new_status is RequestStatus.COMPLETED:
            request.completed_at = now
        elif new_status is RequestStatus.CANCELLED:
            request.cancelled_at = now
        return request

    def cancel_if_created(self, request_id, requester_id, now):
        stmt = (
            update(ExchangeRequest)
            .where(
                ExchangeRequest.id == request_id,
                ExchangeRequest.requester_id == requester_id,
                ExchangeRequest.status == RequestStatus.CREATED,
            )
            .values(status=RequestStatus.CANCELLED, cancelled_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def increment_views(self, request_ids):
        if not request_ids:
            return 0
        stmt = (
            update(ExchangeRequest)
            .where(ExchangeRequest.id.in_(request_ids))
            .values(view_count=ExchangeRequest.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def expire_stale(self, now, requester_id=None):
        conditions = [
            ExchangeRequest.status == RequestStatus.CREATED,
            ExchangeRequest.expires_at <= now,
        ]
        if requester_id is not None:
            conditions.append(ExchangeRequest.requester_id == requester_id)
        stmt = (
            update(ExchangeRequest)
            .where(*conditions)
            .values(status=RequestStatus.EXPIRED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def purge_terminal(self, now, older_than_days):
        cutoff = now - timedelta(days=older_than_days)
        # linked_request_id references to purged rows are nulled by the foreign key.
        stmt = (
            delete(ExchangeRequest)
            .where(ExchangeRequest.status.in_(TERMINAL_STATUSES), ExchangeRequest.updated_at <= cutoff)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount
