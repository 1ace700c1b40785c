"""Pydantic request/response schemas for the web API.

Request bodies also accept the mini app client's camelCase field names
(userAddress, currentPrice, prediction, timestamp, newPrice).
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from shared_types import Direction

# --- Requests ---


class SubmitRequest(BaseModel):
    user: str = Field(..., min_length=1, max_length=128, validation_alias=AliasChoices("user", "userAddress"))
    direction: Direction = Field(..., validation_alias=AliasChoices("direction", "prediction"))
    reference_price: float = Field(
        ..., gt=0, allow_inf_nan=False, validation_alias=AliasChoices("reference_price", "currentPrice")
    )
    submitted_at: int = Field(..., gt=0, validation_alias=AliasChoices("submitted_at", "timestamp"))

    @field_validator("user")
    @classmethod
    def strip_user(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("user must be non-empty")
        return v

    @field_validator("direction", mode="before")
    @classmethod
    def parse_direction(cls, v):
        return Direction.parse(v)


class VerifyRequest(BaseModel):
    user: str = Field(..., min_length=1, max_length=128, validation_alias=AliasChoices("user", "userAddress"))
    submitted_at: int = Field(..., gt=0, validation_alias=AliasChoices("submitted_at", "timestamp"))
    current_price: Optional[float] = Field(
        None, gt=0, allow_inf_nan=False, validation_alias=AliasChoices("current_price", "newPrice")
    )

    @field_validator("user")
    @classmethod
    def strip_user(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("user must be non-empty")
        return v


# --- Responses ---


class StatsResponse(BaseModel):
    total_predictions: int
    correct_predictions: int
    current_streak: int
    best_streak: int
    win_rate: float
    last_prediction_correct: bool = False


class SubmitResponse(BaseModel):
    success: bool = True
    expires_at: int
    storage: str


class VerifyResponse(BaseModel):
    success: bool = True
    correct: bool
    direction: Direction
    reference_price: float
    current_price: float
    delta: float
    delta_percent: float
    multiplier: float
    stats: StatsResponse


class PriceResponse(BaseModel):
    asset: str
    currency: str
    price: float
    change_24h: Optional[float] = None
    fetched_at: int


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    retry_after_minutes: Optional[int] = None
    detail: Optional[list | str] = None


class HealthResponse(BaseModel):
    status: str
    storage: str
    durable: bool
    metrics: dict = Field(default_factory=dict)
