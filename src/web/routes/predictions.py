"""Prediction game routes: submit, verify, stats."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ledger import Expired, NotFound, PredictionLedger, RateLimited, StorageFailure
from oracle import OracleError, PriceOracle
from web.deps import get_ledger, get_oracle
from web.models import ErrorResponse, StatsResponse, SubmitRequest, SubmitResponse, VerifyRequest, VerifyResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/api/predictions", tags=["predictions"])


def error_response(status_code: int, code: str, headers: Optional[dict] = None, **fields) -> JSONResponse:
    content = {"error": code}
    content.update({k: v for k, v in fields.items() if v is not None})
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _storage_error(result: StorageFailure) -> JSONResponse:
    return error_response(503, result.code, message=f"Storage unavailable during {result.operation}")


@router.post(
    "",
    response_model=SubmitResponse,
    responses={429: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
def submit_prediction(
    body: SubmitRequest,
    ledger: PredictionLedger = Depends(get_ledger),
):
    result = ledger.submit(body.user, body.direction, body.reference_price, body.submitted_at)
    if isinstance(result, RateLimited):
        return error_response(
            429,
            result.code,
            headers={"Retry-After": str(result.retry_after_minutes * 60)},
            retry_after_minutes=result.retry_after_minutes,
            message=f"Max {result.limit} predictions per hour",
        )
    if isinstance(result, StorageFailure):
        return _storage_error(result)
    return SubmitResponse(expires_at=result.expires_at, storage=result.storage)


@router.post(
    "/verify",
    response_model=VerifyResponse,
    responses={404: {"model": ErrorResponse}, 410: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def verify_prediction(
    body: VerifyRequest,
    ledger: PredictionLedger = Depends(get_ledger),
    oracle: PriceOracle = Depends(get_oracle),
):
    current_price = body.current_price
    if current_price is None:
        try:
            quote = await oracle.fetch_price()
        except OracleError as e:
            return error_response(503, "oracle_error", message=str(e))
        current_price = quote.price

    result = await run_in_threadpool(ledger.verify, body.user, body.submitted_at, current_price)
    if isinstance(result, NotFound):
        return error_response(404, result.code, message="Prediction not found or already verified")
    if isinstance(result, Expired):
        return error_response(
            410,
            result.code,
            message=f"Prediction expired {result.expired_for_ms // 1000}s ago",
        )
    if isinstance(result, StorageFailure):
        return _storage_error(result)
    return VerifyResponse(**result.to_dict())


@router.get("/stats", response_model=StatsResponse, responses={400: {"model": ErrorResponse}})
def prediction_stats(
    user: Optional[str] = Query(default=None, max_length=128),
    user_address: Optional[str] = Query(default=None, alias="userAddress", max_length=128),
    ledger: PredictionLedger = Depends(get_ledger),
):
    who = user or user_address
    if not who or not who.strip():
        return error_response(400, "invalid_request", message="Missing user")
    result = ledger.get_stats(who)
    if isinstance(result, StorageFailure):
        return _storage_error(result)
    return StatsResponse(**result.to_dict())
