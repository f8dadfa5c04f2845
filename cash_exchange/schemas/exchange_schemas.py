from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models import Direction, RequestStatus


class CreateExchangeRequest(BaseModel):
    amount: int = Field(gt=0)
    exchangeType: Direction
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    expiresInMinutes: Optional[int] = Field(default=None, ge=5, le=1440)
    notes: Optional[str] = Field(default=None, max_length=500)


class CompleteExchangeRequest(BaseModel):
    code: str = Field(pattern=r"^\d{6}$")


class ExchangeRequestResponse(BaseModel):
    id: UUID
    requesterId: int
    helperId: Optional[int] = None
    amount: int
    exchangeType: Direction
    latitude: float
    longitude: float
    status: RequestStatus
    linkedRequestId: Optional[UUID] = None
    platformFee: int
    viewCount: int
    notes: Optional[str] = None
    expiresAt: datetime
    createdAt: datetime
    acceptedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, request):
        return cls(
            id=request.id,
            requesterId=request.requester_id,
            helperId=request.helper_id,
            amount=request.amount,
            exchangeType=request.direction,
            latitude=request.latitude,
            longitude=request.longitude,
            status=request.status,
            linkedRequestId=request.linked_request_id,
            platformFee=request.platform_fee,
            viewCount=request.view_count,
            notes=request.notes,
            expiresAt=request.expires_at,
            createdAt=request.created_at,
            acceptedAt=request.accepted_at,
            completedAt=request.completed_at,
            cancelledAt=request.cancelled_at,
        )


class NearbyRequestResponse(ExchangeRequestResponse):
    distanceMeters: float


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int

    @classmethod
    def from_pagination(cls, pagination):
        return cls(
            page=pagination.page,
            limit=pagination.limit,
            total=pagination.total,
            totalPages=pagination.total_pages,
        )


class NearbySearchResponse(BaseModel):
    requests: List[NearbyRequestResponse]
    pagination: PaginationResponse


class HelpersResponse(BaseModel):
    myRequest: ExchangeRequestResponse
    helpers: List[NearbyRequestResponse]
    pagination: PaginationResponse


class AcceptResponse(BaseModel):
    message: str
    exchangeRequest: ExchangeRequestResponse
    completionCode: str


class MyRequestsResponse(BaseModel):
    requests: List[ExchangeRequestResponse]
    pagination: PaginationResponse


def nearby_response(match):
    data = ExchangeRequestResponse.from_model(match.request).model_dump()
    return NearbyRequestResponse(**data, distanceMeters=round(match.distance_m, 1))
