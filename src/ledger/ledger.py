"""PredictionLedger: submit, verify, stats and sweep for the price game.

All state lives in the injected KeyValueStore under three key prefixes
(pred:, history:, stats:). Expected outcomes come back as result objects
from ledger.models; only invalid arguments raise (ValueError).
"""

import math
import time
from typing import Callable, Optional

import structlog

from cli.config_models import GameConfig, RetryConfig, StoreTTLConfig
from cli.retry import store_retrying
from observability import metrics
from shared_types import Direction

from .models import (
    KEYS,
    Expired,
    NotFound,
    Prediction,
    RateLimited,
    StatsResult,
    StorageFailure,
    SubmitResult,
    Submitted,
    SweepReport,
    UserStats,
    Verification,
    VerifyResult,
    canonical_user,
)
from .store import KeyValueStore, StoreUnavailable

logger = structlog.get_logger().bind(source="ledger")

MS_PER_MINUTE = 60_000


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


def _positive_price(value, name: str) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(price) or price <= 0:
        raise ValueError(f"{name} must be > 0, got {value!r}")
    return price


def _timestamp(value, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a millisecond timestamp")
    try:
        ts = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a millisecond timestamp, got {value!r}")
    if ts <= 0:
        raise ValueError(f"{name} must be > 0, got {value!r}")
    return ts


class PredictionLedger:
    """Owns pending predictions, submission histories and user stats."""

    def __init__(
        self,
        store: KeyValueStore,
        game: Optional[GameConfig] = None,
        ttl: Optional[StoreTTLConfig] = None,
        retry: Optional[RetryConfig] = None,
        clock: Callable[[], int] = wall_clock_ms,
    ):
        self.store = store
        self.game = game or GameConfig()
        self.ttl = ttl or StoreTTLConfig()
        self._retrying = store_retrying(retry or RetryConfig(), exceptions=(StoreUnavailable,))
        self._now_ms = clock

    @property
    def storage(self) -> str:
        return self.store.name

    def _call(self, fn, *args):
        """Run one store call under the bounded retry policy."""
        return self._retrying.copy()(fn, *args)

    def _failure(self, operation: str, error: Exception, **fields) -> StorageFailure:
        logger.error("ledger.storage_failure", operation=operation, error=str(error), **fields)
        metrics.counter(f"ledger.{operation}.storage_error")
        return StorageFailure(operation=operation, detail=str(error))

    def _in_window(self, history, now: int) -> list[int]:
        window = self.game.rate_limit_window_ms
        recent = []
        for t in history or []:
            try:
                t = int(t)
            except (TypeError, ValueError):
                continue
            if now - t < window:
                recent.append(t)
        return recent

    # --- submit ---

    def submit(
        self,
        user: str,
        direction: str | Direction,
        reference_price: float,
        submitted_at: int,
    ) -> SubmitResult:
        """Record a new prediction unless the user is over the hourly limit."""
        user = canonical_user(user)
        direction = Direction.parse(direction)
        reference_price = _positive_price(reference_price, "reference_price")
        submitted_at = _timestamp(submitted_at, "submitted_at")
        now = self._now_ms()

        with metrics.timer("ledger.submit"):
            history_key = KEYS.history(user)
            try:
                history = self._call(self.store.get, history_key)
            except StoreUnavailable as e:
                return self._failure("submit", e, user=user)

            recent = self._in_window(history, now)
            limit = self.game.max_predictions_per_hour
            if len(recent) >= limit:
                wait_ms = min(recent) + self.game.rate_limit_window_ms - now
                retry_after = max(1, math.ceil(wait_ms / MS_PER_MINUTE))
                logger.info("ledger.rate_limited", user=user, recent=len(recent), retry_after_minutes=retry_after)
                metrics.counter("ledger.submit.rate_limited")
                return RateLimited(retry_after_minutes=retry_after, limit=limit)

            prediction = Prediction(
                user=user,
                reference_price=reference_price,
                direction=direction,
                submitted_at=submitted_at,
                expires_at=submitted_at + self.game.prediction_window_ms,
                stored_at=now,
            )
            key = KEYS.prediction(user, submitted_at)
            try:
                self._call(self.store.set, key, prediction.to_dict(), self.ttl.prediction_seconds)
            except StoreUnavailable as e:
                return self._failure("submit", e, user=user, key=key)

            # Independent write: a failure here under-counts the rate limit
            # but leaves the stored prediction intact.
            try:
                self._call(
                    self.store.update,
                    history_key,
                    lambda current: self._in_window(current, now) + [submitted_at],
                    self.ttl.history_seconds,
                )
            except StoreUnavailable as e:
                logger.warning("ledger.history_write_failed", user=user, error=str(e))
                metrics.counter("ledger.submit.history_error")

        logger.info(
            "ledger.submitted",
            user=user,
            direction=str(direction),
            reference_price=reference_price,
            expires_at=prediction.expires_at,
            storage=self.storage,
        )
        metrics.counter("ledger.submit.accepted")
        return Submitted(expires_at=prediction.expires_at, storage=self.storage)

    # --- verify ---

    def verify(
        self,
        user: str,
        submitted_at: int,
        current_price: float,
        now: Optional[int] = None,
    ) -> VerifyResult:
        """Resolve a pending prediction against current_price. Single use."""
        user = canonical_user(user)
        submitted_at = _timestamp(submitted_at, "submitted_at")
        current_price = _positive_price(current_price, "current_price")
        now = self._now_ms() if now is None else int(now)
        key = KEYS.prediction(user, submitted_at)

        with metrics.timer("ledger.verify"):
            # take() is the compare-and-delete: concurrent verifies get one value
            try:
                raw = self._call(self.store.take, key)
            except StoreUnavailable as e:
                return self._failure("verify", e, user=user, key=key)

            if raw is None:
                logger.info("ledger.not_found", user=user, key=key)
                metrics.counter("ledger.verify.not_found")
                return NotFound(key=key)

            prediction = Prediction.from_dict(raw)
            overdue = now - (prediction.expires_at + self.game.verify_grace_ms)
            if overdue > 0:
                expired_for = now - prediction.expires_at
                logger.info("ledger.expired", user=user, key=key, expired_for_ms=expired_for)
                metrics.counter("ledger.verify.expired")
                return Expired(expired_for_ms=expired_for)

            delta = current_price - prediction.reference_price
            actually_up = delta > 0
            predicted_up = prediction.direction == Direction.UP
            correct = predicted_up == actually_up
            multiplier = self.game.win_multiplier if correct else self.game.loss_multiplier

            try:
                stats_data = self._call(
                    self.store.update,
                    KEYS.stats(user),
                    lambda current: UserStats.from_dict(current).apply(correct).to_dict(),
                    self.ttl.stats_seconds,
                )
            except StoreUnavailable as e:
                self._restore(key, raw, prediction, now)
                return self._failure("verify", e, user=user, key=key)

        stats = UserStats.from_dict(stats_data)
        logger.info(
            "ledger.verified",
            user=user,
            direction=str(prediction.direction),
            reference_price=prediction.reference_price,
            current_price=current_price,
            correct=correct,
            multiplier=multiplier,
            current_streak=stats.current_streak,
            best_streak=stats.best_streak,
        )
        metrics.counter("ledger.verify.correct" if correct else "ledger.verify.incorrect")
        return Verification(
            correct=correct,
            direction=prediction.direction,
            reference_price=prediction.reference_price,
            current_price=current_price,
            delta=round(delta, 4),
            delta_percent=round(delta / prediction.reference_price * 100, 2),
            multiplier=multiplier,
            stats=stats.view(),
        )

    def _restore(self, key: str, raw: dict, prediction: Prediction, now: int) -> None:
        """Put a claimed prediction back after its stats write failed."""
        age_ms = now - (prediction.stored_at or now)
        remaining = max(1, math.ceil(self.ttl.prediction_seconds - age_ms / 1000))
        try:
            self._call(self.store.set, key, raw, remaining)
        except StoreUnavailable as e:
            logger.error("ledger.restore_failed", key=key, error=str(e))
            metrics.counter("ledger.verify.restore_error")
        else:
            logger.warning("ledger.restored", key=key, ttl_seconds=remaining)

    # --- stats ---

    def get_stats(self, user: str) -> StatsResult:
        """Read-only stats projection. Zeros for unknown users."""
        user = canonical_user(user)
        try:
            data = self._call(self.store.get, KEYS.stats(user))
        except StoreUnavailable as e:
            return self._failure("get_stats", e, user=user)
        return UserStats.from_dict(data).view()

    # --- maintenance ---

    def sweep_expired(self, now: Optional[int] = None) -> SweepReport | StorageFailure:
        """Drop stale predictions and prune rate-limit histories.

        Safe alongside submit/verify: every delete re-checks the current value
        inside the store's atomic delete_if/update.
        """
        now = self._now_ms() if now is None else int(now)
        # Never sweep a prediction that is still inside its verify grace period
        buffer_ms = max(self.game.sweep_buffer_ms, self.game.verify_grace_ms)

        def stale(value) -> bool:
            try:
                return now > int(value["expires_at"]) + buffer_ms
            except (KeyError, TypeError, ValueError):
                return True

        def prune(current):
            return self._in_window(current, now) or None

        removed = pruned = histories_removed = 0
        with metrics.timer("ledger.sweep"):
            try:
                for key, value in self._call(self.store.scan, KEYS.prediction_prefix):
                    if stale(value) and self._call(self.store.delete_if, key, stale):
                        removed += 1

                for key, value in self._call(self.store.scan, KEYS.history_prefix):
                    before = len(value) if isinstance(value, list) else 0
                    after = self._call(self.store.update, key, prune, self.ttl.history_seconds)
                    if after is None:
                        histories_removed += 1
                    elif len(after) < before:
                        pruned += 1

                purged = self._call(self.store.purge_expired)
            except StoreUnavailable as e:
                return self._failure("sweep", e)

        report = SweepReport(
            predictions_removed=removed,
            histories_pruned=pruned,
            histories_removed=histories_removed,
            expired_purged=purged,
        )
        logger.info("ledger.sweep", **report.to_dict())
        metrics.counter("ledger.sweep.runs")
        return report
