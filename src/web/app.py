"""FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ledger import PredictionLedger, SweepScheduler
from observability import metrics
from web.deps import get_config, get_ledger, get_oracle
from web.models import HealthResponse
from web.routes import predictions, price

logger = structlog.get_logger()


def _resolve(app: FastAPI, dependency):
    """Call a dependency, honouring test overrides."""
    return app.dependency_overrides.get(dependency, dependency)()


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = _resolve(app, get_config)
    ledger = _resolve(app, get_ledger)
    sweeper = None
    if config.sweep.enabled:
        sweeper = SweepScheduler(ledger, interval_seconds=config.sweep.interval_seconds)
        sweeper.start()
    logger.info("web.startup", storage=ledger.storage, durable=ledger.store.durable)
    yield
    if sweeper:
        sweeper.stop()
    await _resolve(app, get_oracle).aclose()
    logger.info("web.shutdown")


app = FastAPI(
    title="CELO Price Prediction",
    version="0.1.0",
    lifespan=lifespan,
)

# The mini app is served from arbitrary Farcaster client origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().web.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    detail = [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    metrics.counter("web.invalid_request")
    return JSONResponse(status_code=400, content={"error": "invalid_request", "detail": detail})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    metrics.counter("web.invalid_request")
    return JSONResponse(status_code=400, content={"error": "invalid_request", "detail": str(exc)})


app.include_router(predictions.router)
app.include_router(price.router)


@app.get("/api/health", response_model=HealthResponse)
async def health(ledger: PredictionLedger = Depends(get_ledger)):
    return HealthResponse(
        status="ok",
        storage=ledger.storage,
        durable=ledger.store.durable,
        metrics=metrics.summary(),
    )
