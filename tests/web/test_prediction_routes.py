"""Tests for prediction game web API routes."""

from unittest.mock import MagicMock

from ledger import StorageFailure
from web.app import app
from web.deps import get_ledger

USER = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"


def _submit(client, submitted_at, direction="up", price=0.5, user=USER):
    return client.post(
        "/api/predictions",
        json={"user": user, "direction": direction, "reference_price": price, "submitted_at": submitted_at},
    )


def _verify(client, submitted_at, current_price=None, user=USER):
    body = {"user": user, "submitted_at": submitted_at}
    if current_price is not None:
        body["current_price"] = current_price
    return client.post("/api/predictions/verify", json=body)


# --- submit ---


def test_submit(client, clock):
    res = _submit(client, clock.ms())
    assert res.status_code == 200
    assert res.json() == {"success": True, "expires_at": clock.ms() + 60_000, "storage": "memory"}


def test_submit_accepts_mini_app_field_names(client, clock):
    res = client.post(
        "/api/predictions",
        json={"userAddress": USER, "prediction": "DOWN", "currentPrice": 0.5, "timestamp": clock.ms()},
    )
    assert res.status_code == 200
    assert res.json()["success"] is True


def test_submit_invalid_direction(client, clock):
    res = _submit(client, clock.ms(), direction="sideways")
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_request"


def test_submit_non_positive_price(client, clock):
    res = _submit(client, clock.ms(), price=0)
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_request"


def test_submit_missing_fields(client):
    res = client.post("/api/predictions", json={"user": USER})
    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "invalid_request"
    assert body["detail"]


def test_submit_blank_user(client, clock):
    res = _submit(client, clock.ms(), user="   ")
    assert res.status_code == 400


def test_submit_rate_limited(client, clock):
    for i in range(10):
        assert _submit(client, clock.ms() + i).status_code == 200

    res = _submit(client, clock.ms() + 10)
    assert res.status_code == 429
    assert res.headers["Retry-After"] == "3600"
    body = res.json()
    assert body["error"] == "rate_limited"
    assert body["retry_after_minutes"] == 60


def test_submit_storage_error(client, clock):
    ledger = MagicMock()
    ledger.submit.return_value = StorageFailure(operation="submit", detail="locked")
    app.dependency_overrides[get_ledger] = lambda: ledger

    res = _submit(client, clock.ms())
    assert res.status_code == 503
    assert res.json()["error"] == "storage_error"


# --- verify ---


def test_verify_correct(client, clock):
    t = clock.ms()
    _submit(client, t, direction="up", price=0.5)
    clock.advance(60_000)

    res = _verify(client, t, current_price=0.55)
    assert res.status_code == 200
    body = res.json()
    assert body["correct"] is True
    assert body["direction"] == "up"
    assert body["delta"] == 0.05
    assert body["delta_percent"] == 10.0
    assert body["multiplier"] == 2.0
    assert body["stats"]["total_predictions"] == 1
    assert body["stats"]["current_streak"] == 1
    assert body["stats"]["win_rate"] == 100.0


def test_verify_incorrect(client, clock):
    t = clock.ms()
    _submit(client, t, direction="up", price=0.5)
    res = _verify(client, t, current_price=0.45)
    body = res.json()
    assert body["correct"] is False
    assert body["multiplier"] == 0.5
    assert body["stats"]["current_streak"] == 0


def test_verify_uses_oracle_when_price_missing(client, clock, fake_oracle):
    t = clock.ms()
    _submit(client, t, direction="down", price=0.6)
    fake_oracle.price = 0.5

    res = _verify(client, t)
    assert res.status_code == 200
    assert res.json()["current_price"] == 0.5
    assert res.json()["correct"] is True
    assert fake_oracle.calls == 1


def test_verify_oracle_failure(client, clock, fake_oracle):
    t = clock.ms()
    _submit(client, t)
    fake_oracle.error = "CoinGecko down"

    res = _verify(client, t)
    assert res.status_code == 503
    assert res.json()["error"] == "oracle_error"
    # Prediction is untouched and still verifiable
    fake_oracle.error = None
    assert _verify(client, t).status_code == 200


def test_verify_accepts_mini_app_field_names(client, clock):
    t = clock.ms()
    _submit(client, t)
    res = client.post(
        "/api/predictions/verify",
        json={"userAddress": USER.lower(), "timestamp": t, "newPrice": 0.7},
    )
    assert res.status_code == 200
    assert res.json()["correct"] is True


def test_verify_twice_is_not_found(client, clock):
    t = clock.ms()
    _submit(client, t)
    assert _verify(client, t, current_price=0.6).status_code == 200

    res = _verify(client, t, current_price=0.6)
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"


def test_verify_unknown(client, clock):
    res = _verify(client, clock.ms(), current_price=0.6)
    assert res.status_code == 404


def test_verify_expired(client, clock):
    t = clock.ms()
    _submit(client, t)
    clock.advance(60_000 + 10_000 + 5_000)

    res = _verify(client, t, current_price=0.6)
    assert res.status_code == 410
    assert res.json()["error"] == "expired"
    assert _verify(client, t, current_price=0.6).status_code == 404


def test_verify_storage_error(client, clock):
    ledger = MagicMock()
    ledger.verify.return_value = StorageFailure(operation="verify", detail="locked")
    app.dependency_overrides[get_ledger] = lambda: ledger

    res = _verify(client, clock.ms(), current_price=0.6)
    assert res.status_code == 503
    assert res.json()["error"] == "storage_error"


# --- stats ---


def test_stats_unknown_user_is_zero(client):
    res = client.get("/api/predictions/stats", params={"user": "0xnobody"})
    assert res.status_code == 200
    assert res.json() == {
        "total_predictions": 0,
        "correct_predictions": 0,
        "current_streak": 0,
        "best_streak": 0,
        "win_rate": 0.0,
        "last_prediction_correct": False,
    }


def test_stats_after_verify(client, clock):
    t = clock.ms()
    _submit(client, t)
    _verify(client, t, current_price=0.6)

    res = client.get("/api/predictions/stats", params={"userAddress": USER.upper().replace("0X", "0x")})
    assert res.status_code == 200
    assert res.json()["total_predictions"] == 1
    assert res.json()["correct_predictions"] == 1


def test_stats_missing_user(client):
    res = client.get("/api/predictions/stats")
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_request"


def test_stats_storage_error(client):
    ledger = MagicMock()
    ledger.get_stats.return_value = StorageFailure(operation="get_stats")
    app.dependency_overrides[get_ledger] = lambda: ledger

    res = client.get("/api/predictions/stats", params={"user": USER})
    assert res.status_code == 503


# --- price / health ---


def test_price(client):
    res = client.get("/api/price")
    assert res.status_code == 200
    body = res.json()
    assert body["price"] == 0.55
    assert body["asset"] == "celo"
    assert body["change_24h"] == 1.5


def test_price_oracle_failure(client, fake_oracle):
    fake_oracle.error = "timeout"
    res = client.get("/api/price")
    assert res.status_code == 503
    assert res.json()["error"] == "oracle_error"


def test_health(client, clock):
    _submit(client, clock.ms())
    res = client.get("/api/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["storage"] == "memory"
    assert body["durable"] is False
    assert body["metrics"]["counters"]["ledger.submit.accepted"] == 1


def test_cors_allows_any_origin(client):
    res = client.get("/api/price", headers={"Origin": "https://warpcast.com"})
    assert res.headers["access-control-allow-origin"] == "*"
