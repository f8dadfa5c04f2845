from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from ..models import Direction, TransactionStatus
from .exchange_schemas import ExchangeRequestResponse, PaginationResponse


class TransactionDetail(BaseModel):
    id: UUID
    exchangeRequestId: UUID
    payerId: int
    payeeId: int
    type: Direction
    amount: int
    platformFee: int
    netAmount: int
    payerBalanceBefore: int
    payerBalanceAfter: int
    payeeBalanceBefore: int
    payeeBalanceAfter: int
    status: TransactionStatus
    completedAt: datetime
    reversedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, tx):
        return cls(
            id=tx.id,
            exchangeRequestId=tx.exchange_request_id,
            payerId=tx.payer_id,
            payeeId=tx.payee_id,
            type=tx.direction,
            amount=tx.amount,
            platformFee=tx.platform_fee,
            netAmount=tx.net_amount,
            payerBalanceBefore=tx.payer_balance_before,
            payerBalanceAfter=tx.payer_balance_after,
            payeeBalanceBefore=tx.payee_balance_before,
            payeeBalanceAfter=tx.payee_balance_after,
            status=tx.status,
            completedAt=tx.completed_at,
            reversedAt=tx.reversed_at,
        )


class CompleteResponse(BaseModel):
    message: str
    exchangeRequest: ExchangeRequestResponse
    transaction: TransactionDetail


class TransactionHistoryResponse(BaseModel):
    userId: int
    transactions: List[TransactionDetail]
    pagination: PaginationResponse


class TransactionStatsResponse(BaseModel):
    totalTransactions: int
    totalAmountPaid: int
    totalAmountReceived: int
    totalFeesPaid: int
