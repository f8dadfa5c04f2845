from pydantic import BaseModel


class UserBalanceResponse(BaseModel):
    userId: int
    balance: int
    currency: str
    completedExchanges: int
