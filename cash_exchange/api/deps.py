from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from ..clock import SystemClock
from ..config import get_settings
from ..db import get_db
from ..services import ExchangeService


def get_clock():
    return SystemClock()


def get_current_user_id(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> int:
    # Identity is established upstream; the gateway forwards the trusted user id.
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing actor identity")
    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid actor identity")


def get_exchange_service(db: Session = Depends(get_db), clock=Depends(get_clock)) -> ExchangeService:
    return ExchangeService(db, clock=clock, settings=get_settings())
