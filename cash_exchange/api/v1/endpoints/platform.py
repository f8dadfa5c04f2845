from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ....db import get_db
from ....models import Account, Balance, OwnerType
from ....services import PLATFORM_ACCOUNT
from ....schemas import system_schemas

router = APIRouter()

@router.get("/balance", response_model=system_schemas.SystemBalanceResponse)
def get_platform_balance(db: Session = Depends(get_db)):
    row = (
        db.query(Account.currency, Balance.balance)
        .join(Balance, Balance.account_id == Account.id)
        .filter(Account.owner_type == OwnerType.SYSTEM, Account.system_name == PLATFORM_ACCOUNT)
        .first()
    )
    if not row:
        return {"systemName": PLATFORM_ACCOUNT, "balance": 0, "currency": "INR"}
    return {"systemName": PLATFORM_ACCOUNT, "balance": row.balance, "currency": row.currency}
