"""Current reference price from the oracle."""

from fastapi import APIRouter, Depends

from oracle import OracleError, PriceOracle
from web.deps import get_oracle
from web.models import ErrorResponse, PriceResponse
from web.routes.predictions import error_response

router = APIRouter(prefix="/api/price", tags=["price"])


@router.get("", response_model=PriceResponse, responses={503: {"model": ErrorResponse}})
async def current_price(oracle: PriceOracle = Depends(get_oracle)):
    try:
        quote = await oracle.fetch_price()
    except OracleError as e:
        return error_response(503, "oracle_error", message=str(e))
    return PriceResponse(**quote.to_dict())
