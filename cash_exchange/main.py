import logging

from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from .db import get_db
from .api.v1.api import api_router
from .exceptions import ExchangeError, VALIDATION, CONFLICT, NOT_FOUND
from .logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    VALIDATION: 400,
    CONFLICT: 409,
    NOT_FOUND: 404,
}

app = FastAPI(title="Cash Exchange Service")


@app.exception_handler(ExchangeError)
def handle_exchange_error(request: Request, exc: ExchangeError):
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if status_code == 500:
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"code": exc.code, "detail": exc.message})


@app.get("/")
def welcome():
    return {
        "message": "Welcome to the Cash Exchange Service API!",
        "version": "1.0.0",
        "documentation": "/docs",
        "endpoints": {
            "/": "Overview of all available routes.",
            "/health": "Check API and Database status.",
            "/v1/exchange": "Create an exchange request.",
            "/v1/exchange/nearby": "Find open requests near a point.",
            "/v1/exchange/helpers": "Find requests compatible with your own.",
            "/v1/exchange/my-requests": "List your requests.",
            "/v1/exchange/{id}/accept": "Accept a request as helper.",
            "/v1/exchange/{id}/complete": "Settle an accepted request with its completion code.",
            "/v1/exchange/{id}/cancel": "Cancel your open request.",
            "/v1/transactions": "Get your transaction history.",
            "/v1/transactions/stats": "Get your transaction totals.",
            "/v1/users/{id}/balance": "Get a user's wallet balance.",
            "/v1/platform/balance": "Check collected platform fees."
        },
        "rationale": "Conditional updates decide acceptance races; settlement is one row-locked database transaction."
    }


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as e:
        logger.exception("Health check failed")
        return {"status": "error", "details": str(e)}


app.include_router(api_router, prefix="/v1")
