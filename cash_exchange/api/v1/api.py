from fastapi import APIRouter
from .endpoints import exchange, users, transactions, platform

api_router = APIRouter()
api_router.include_router(exchange.router, prefix="/exchange", tags=["exchange"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
api_router.include_router(platform.router, prefix="/platform", tags=["platform"])
