"""Value types for the prediction ledger: records and operation results."""

from dataclasses import asdict, dataclass

from shared_types import Direction


def canonical_user(user: str) -> str:
    """Canonical user key: wallet addresses are case-insensitive."""
    if user is None or not str(user).strip():
        raise ValueError("user must be non-empty")
    return str(user).strip().lower()


def _as_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class Prediction:
    """A pending up/down guess, keyed by (user, submitted_at)."""

    user: str
    reference_price: float
    direction: Direction
    submitted_at: int
    expires_at: int
    stored_at: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["direction"] = str(self.direction)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Prediction":
        return cls(
            user=data["user"],
            reference_price=float(data["reference_price"]),
            direction=Direction.parse(data["direction"]),
            submitted_at=int(data["submitted_at"]),
            expires_at=int(data["expires_at"]),
            stored_at=_as_int(data.get("stored_at")),
        )


@dataclass
class UserStats:
    """Cumulative per-user results. Mutated only through apply()."""

    total_predictions: int = 0
    correct_predictions: int = 0
    current_streak: int = 0
    best_streak: int = 0
    last_prediction_correct: bool = False

    def apply(self, correct: bool) -> "UserStats":
        """Record one verification outcome in place."""
        self.total_predictions += 1
        if correct:
            self.correct_predictions += 1
            if self.last_prediction_correct:
                self.current_streak += 1
            else:
                self.current_streak = 1
            self.best_streak = max(self.best_streak, self.current_streak)
            self.last_prediction_correct = True
        else:
            self.current_streak = 0
            self.last_prediction_correct = False
        return self

    @property
    def win_rate(self) -> float:
        if self.total_predictions == 0:
            return 0.0
        return round(self.correct_predictions / self.total_predictions * 100, 1)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "UserStats":
        """Build from stored JSON, coercing junk values to safe defaults."""
        if not data:
            return cls()
        stats = cls(
            total_predictions=max(_as_int(data.get("total_predictions")), 0),
            correct_predictions=max(_as_int(data.get("correct_predictions")), 0),
            current_streak=max(_as_int(data.get("current_streak")), 0),
            best_streak=max(_as_int(data.get("best_streak")), 0),
            last_prediction_correct=bool(data.get("last_prediction_correct", False)),
        )
        stats.correct_predictions = min(stats.correct_predictions, stats.total_predictions)
        if not stats.last_prediction_correct:
            stats.current_streak = 0
        stats.best_streak = max(stats.best_streak, stats.current_streak)
        return stats

    def view(self) -> "StatsView":
        return StatsView(
            total_predictions=self.total_predictions,
            correct_predictions=self.correct_predictions,
            current_streak=self.current_streak,
            best_streak=self.best_streak,
            win_rate=self.win_rate,
            last_prediction_correct=self.last_prediction_correct,
        )


# --- Operation results ---


@dataclass(frozen=True)
class StatsView:
    total_predictions: int
    correct_predictions: int
    current_streak: int
    best_streak: int
    win_rate: float
    last_prediction_correct: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Submitted:
    expires_at: int
    storage: str
    ok = True


@dataclass(frozen=True)
class Verification:
    correct: bool
    direction: Direction
    reference_price: float
    current_price: float
    delta: float
    delta_percent: float
    multiplier: float
    stats: StatsView
    ok = True

    def to_dict(self) -> dict:
        data = asdict(self)
        data["direction"] = str(self.direction)
        return data


@dataclass(frozen=True)
class RateLimited:
    retry_after_minutes: int
    limit: int
    code = "rate_limited"
    ok = False


@dataclass(frozen=True)
class NotFound:
    key: str
    code = "not_found"
    ok = False


@dataclass(frozen=True)
class Expired:
    expired_for_ms: int
    code = "expired"
    ok = False


@dataclass(frozen=True)
class StorageFailure:
    operation: str
    detail: str = ""
    code = "storage_error"
    ok = False


@dataclass(frozen=True)
class SweepReport:
    predictions_removed: int = 0
    histories_pruned: int = 0
    histories_removed: int = 0
    expired_purged: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


SubmitResult = Submitted | RateLimited | StorageFailure
VerifyResult = Verification | NotFound | Expired | StorageFailure
StatsResult = StatsView | StorageFailure


class _Keys:
    """Key namespaces. Each entity kind has its own prefix."""

    prediction_prefix = "pred:"
    history_prefix = "history:"
    stats_prefix = "stats:"

    def prediction(self, user: str, submitted_at: int) -> str:
        return f"{self.prediction_prefix}{user}:{submitted_at}"

    def history(self, user: str) -> str:
        return f"{self.history_prefix}{user}"

    def stats(self, user: str) -> str:
        return f"{self.stats_prefix}{user}"


KEYS = _Keys()
