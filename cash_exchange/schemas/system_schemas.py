from pydantic import BaseModel


class SystemBalanceResponse(BaseModel):
    systemName: str
    balance: int
    currency: str
