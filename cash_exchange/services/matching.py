"""
Discovery of nearby, compatible exchange requests.

Only CREATED, unexpired requests can match. That, plus the radius and the
caller exclusion, is expressed in the SQL WHERE clause; results come back
ordered by great-circle distance.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ..clock import SystemClock
from ..config import get_settings
from ..exceptions import NoActiveRequestError, ValidationError
from ..models import Direction, ExchangeRequest, RequestStatus
from .geo import GeoPoint, bounding_box, distance_expr
from .request_store import RequestStore

logger = logging.getLogger(__name__)


@dataclass
class NearbyFilters:
    direction: Optional[Direction] = None
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None


@dataclass
class PageRequest:
    page: int = 1
    limit: int = 50

    @property
    def offset(self):
        return (self.page - 1) * self.limit


@dataclass
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int


@dataclass
class NearbyMatch:
    request: ExchangeRequest
    distance_m: float


@dataclass
class SearchResult:
    matches: List[NearbyMatch] = field(default_factory=list)
    pagination: Optional[Pagination] = None
    origin_request: Optional[ExchangeRequest] = None

    @property
    def requests(self):
        return [m.request for m in self.matches]


class MatchingEngine:
    def __init__(self, db, clock=None, settings=None, store=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.store = store or RequestStore(db, self.clock)

    def _resolve_distance(self, max_distance):
        if max_distance is None:
            return self.settings.default_max_distance
        if not self.settings.min_search_distance <= max_distance <= self.settings.max_search_distance:
            raise ValidationError(
                f"Max distance must be between {self.settings.min_search_distance}m "
                f"and {self.settings.max_search_distance}m",
                max_distance=max_distance,
            )
        return max_distance

    def _resolve_page(self, page):
        page = page or PageRequest(limit=self.settings.default_search_limit)
        if page.page < 1:
            raise ValidationError("Page must be a positive integer", page=page.page)
        if not 1 <= page.limit <= self.settings.max_search_limit:
            raise ValidationError(
                f"Limit must be between 1 and {self.settings.max_search_limit}", limit=page.limit
            )
        return page

    def find_nearby(self, origin: GeoPoint, max_distance=None, exclude_user_id=None, filters=None, page=None):
        max_distance = self._resolve_distance(max_distance)
        page = self._resolve_page(page)
        filters = filters or NearbyFilters()
        if (
            filters.min_amount is not None
            and filters.max_amount is not None
            and filters.min_amount > filters.max_amount
        ):
            raise ValidationError("Min amount cannot exceed max amount")

        now = self.clock.now()
        distance = distance_expr(ExchangeRequest.latitude, ExchangeRequest.longitude, origin)

        conditions = [
            ExchangeRequest.status == RequestStatus.CREATED,
            ExchangeRequest.expires_at > now,
        ]
        if exclude_user_id is not None:
            conditions.append(ExchangeRequest.requester_id != exclude_user_id)
        if filters.direction is not None:
            conditions.append(ExchangeRequest.direction == filters.direction)
        if filters.min_amount is not None:
            conditions.append(ExchangeRequest.amount >= filters.min_amount)
        if filters.max_amount is not None:
            conditions.append(ExchangeRequest.amount <= filters.max_amount)

        min_lat, max_lat, min_lon, max_lon = bounding_box(origin, max_distance)
        conditions.append(ExchangeRequest.latitude.between(min_lat, max_lat))
        if min_lon is not None:
            conditions.append(ExchangeRequest.longitude.between(min_lon, max_lon))
        conditions.append(distance <= max_distance)

        total = self.db.execute(
            select(func.count()).select_from(ExchangeRequest).where(*conditions)
        ).scalar_one()

        rows = self.db.execute(
            select(ExchangeRequest, distance.label("distance"))
            .where(*conditions)
            .order_by(distance, ExchangeRequest.created_at)
            .offset(page.offset)
            .limit(page.limit)
        ).all()
        matches = [NearbyMatch(request=row[0], distance_m=float(row[1])) for row in rows]

        # View counts are best effort.
        if matches:
            try:
                self.store.increment_views([m.request.id for m in matches])
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                logger.warning("Could not bump view counts for %s requests", len(matches), exc_info=True)

        logger.debug(
            "Nearby search at (%s, %s) within %sm: %s of %s",
            origin.latitude, origin.longitude, max_distance, len(matches), total,
        )
        return SearchResult(
            matches=matches,
            pagination=Pagination(
                page=page.page,
                limit=page.limit,
                total=total,
                total_pages=math.ceil(total / page.limit) if total else 0,
            ),
        )

    def find_compatible_helpers(self, actor_id, max_distance=None, page=None):
        """
        Requests that can serve as the other side of the actor's open request.

        A compatible request runs in the opposite direction and is at least as
        large, so its owner can cover the actor's amount in full.
        """
        own = self.store.open_request_for(actor_id, self.clock.now())
        if own is None:
            raise NoActiveRequestError("You must have an active exchange request to discover helpers")

        filters = NearbyFilters(direction=own.direction.opposite, min_amount=own.amount)
        result = self.find_nearby(
            GeoPoint(own.latitude, own.longitude),
            max_distance=max_distance,
            exclude_user_id=actor_id,
            filters=filters,
            page=page,
        )
        result.origin_request = own
        return result
