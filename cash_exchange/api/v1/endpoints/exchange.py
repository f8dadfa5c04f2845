from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ....models import Direction, RequestStatus
from ....services import ExchangeService, GeoPoint, NearbyFilters, PageRequest
from ....schemas import exchange_schemas, transaction_schemas
from ...deps import get_current_user_id, get_exchange_service

router = APIRouter()


@router.post("", status_code=201, response_model=exchange_schemas.ExchangeRequestResponse)
def create_exchange_request(
    body: exchange_schemas.CreateExchangeRequest,
    actor_id: int = Depends(get_current_user_id),
    service: ExchangeService = Depends(get_exchange_service),
):
    request = service.create_request(
        actor_id,
        body.amount,
        body.exchangeType,
        GeoPoint.of(body.latitude, body.longitude),
        expiry_minutes=body.expiresInMinutes,
        notes=body.notes,
    )
    return exchange_schemas.ExchangeRequestResponse.from_model(request)


@router.get("/nearby", response_model=exchange_schemas.NearbySearchResponse)
def get_nearby_requests(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    maxDistance: Optional[int] = Query(default=None, ge=100, le=50000),
    minAmount: Optional[int] = Query(default=None, ge=0),
    maxAmount: Optional[int] = Query(default=None, ge=0),
    exchangeType: Optional[Direction] = None,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    actor_id: int = Depends(get_current_user_id),
    service: ExchangeService = Depends(get_exchange_service),
):
    result = service.find_nearby(
        actor_id,
        GeoPoint.of(lat, lng),
        max_distance=maxDistance,
        filters=NearbyFilters(direction=exchangeType, min_amount=minAmount, max_amount=maxAmount),
        page=PageRequest(page=page, limit=limit or service.settings.default_search_limit),
    )
    return {
        "requests": [exchange_schemas.nearby_response(m) for m in result.matches],
        "pagination": exchange_schemas.PaginationResponse.from_pagination(result.pagination),
    }


@router.get("/helpers", response_model=exchange_schemas.HelpersResponse)
def discover_helpers(
    maxDistance: Optional[int] = Query(default=None, ge=100, le=50000),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    actor_id: int = Depends(get_current_user_id),
    service: ExchangeService = Depends(get_exchange_service),
):
    result = service.find_compatible_helpers(
        actor_id,
        max_distance=maxDistance,
        page=PageRequest(page=page, limit=limit or service.settings.default_search_limit),
    )
    return {
        "myRequest": exchange_schemas.ExchangeRequestResponse.from_model(result.origin_request),
        "helpers": [exchange_schemas.nearby_response(m) for m in result.matches],
        "pagination": exchange_schemas.PaginationResponse.from_pagination(result.pagination),
    }


@router.get("/my-requests", response_model=exchange_schemas.MyRequestsResponse)
def get_my_requests(
    status: Optional[RequestStatus] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor_id: int = Depends(get_current_user_id),
    service: ExchangeService = Depends(get_exchange_service),
):
    requests, pagination = service.my_requests(actor_id, status=status, page=PageRequest(page=page, limit=limit))
    return {
        "requests": [exchange_schemas.ExchangeRequestResponse.from_model(r) for r in requests],
        "pagination": exchange_schemas.PaginationResponse.from_pagination(pagination),
    }


@router.post("/{request_id}/accept", response_model=exchange_schemas.AcceptResponse)
def accept_exchange_request(
    request_id: UUID,
    actor_id: int = Depends(get_current_user_id),
    service: ExchangeService = Depends(get_exchange_service),
):
    result = service.accept(actor_id, request_id)
    return {
        "message": "Request accepted successfully",
        "exchangeRequest": exchange_schemas.ExchangeRequestResponse.from_model(result.request),
        "completionCode": result.completion_code,
    }


@router.post("/{request_id}/complete", response_model=transaction_schemas.CompleteResponse)
def complete_exchange_request(
    request_id: UUID,
    body: exchange_schemas.CompleteExchangeRequest,
    actor_id: int = Depends(get_current_user_id),
    service: ExchangeService = Depends(get_exchange_service),
):
    result = service.complete(actor_id, request_id, body.code)
    return {
        "message": "Request completed successfully",
        "exchangeRequest": exchange_schemas.ExchangeRequestResponse.from_model(result.request),
        "transaction": transaction_schemas.TransactionDetail.from_model(result.transaction),
    }


@router.post("/{request_id}/cancel", response_model=exchange_schemas.ExchangeRequestResponse)
def cancel_exchange_request(
    request_id: UUID,
    actor_id: int = Depends(get_current_user_id),
    service: ExchangeService = Depends(get_exchange_service),
):
    request = service.cancel(actor_id, request_id)
    return exchange_schemas.ExchangeRequestResponse.from_model(request)
