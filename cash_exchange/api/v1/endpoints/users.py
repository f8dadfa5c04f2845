from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ....db import get_db
from ....models import User, Account, Balance, OwnerType
from ....schemas import user_schemas

router = APIRouter()

@router.get("/{user_id}/balance", response_model=user_schemas.UserBalanceResponse)
def get_user_balance(user_id: int, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    row = (
        db.query(Account.currency, Balance.balance)
        .join(Balance, Balance.account_id == Account.id)
        .filter(Account.owner_type == OwnerType.USER, Account.user_id == user_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Account not found")

    return {
        "userId": user_id,
        "balance": row.balance,
        "currency": row.currency,
        "completedExchanges": user.completed_exchange_count,
    }
