from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ....db import get_db
from ....models import Direction, TransactionStatus
from ....services import PageRequest, TransactionHistory
from ....schemas import exchange_schemas, transaction_schemas
from ...deps import get_current_user_id

router = APIRouter()


@router.get("", response_model=transaction_schemas.TransactionHistoryResponse)
def get_transaction_history(
    status: Optional[TransactionStatus] = None,
    type: Optional[Direction] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    transactions, pagination = TransactionHistory(db).get_user_history(
        actor_id, page=PageRequest(page=page, limit=limit), status=status, direction=type
    )
    return {
        "userId": actor_id,
        "transactions": [transaction_schemas.TransactionDetail.from_model(tx) for tx in transactions],
        "pagination": exchange_schemas.PaginationResponse.from_pagination(pagination),
    }


@router.get("/stats", response_model=transaction_schemas.TransactionStatsResponse)
def get_transaction_stats(actor_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    stats = TransactionHistory(db).get_user_stats(actor_id)
    return {
        "totalTransactions": stats["total_transactions"],
        "totalAmountPaid": stats["total_amount_paid"],
        "totalAmountReceived": stats["total_amount_received"],
        "totalFeesPaid": stats["total_fees_paid"],
    }
