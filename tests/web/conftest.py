"""Shared fixtures for web API tests."""

import pytest
from fastapi.testclient import TestClient

from oracle import OracleError, PriceQuote
from web.app import app
from web.deps import get_ledger, get_oracle


class FakeOracle:
    """Stands in for PriceOracle. Set .price or .error per test."""

    def __init__(self, price: float = 0.55):
        self.price = price
        self.error = None
        self.calls = 0
        self.closed = False

    async def fetch_price(self) -> PriceQuote:
        self.calls += 1
        if self.error:
            raise OracleError(self.error)
        return PriceQuote(asset="celo", currency="usd", price=self.price, change_24h=1.5, fetched_at=1)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def web_ledger(memory_store, make_ledger):
    return make_ledger(memory_store)


@pytest.fixture
def fake_oracle():
    return FakeOracle()


@pytest.fixture
def client(web_ledger, fake_oracle):
    """Test client over an in-memory ledger and a canned price."""
    app.dependency_overrides[get_ledger] = lambda: web_ledger
    app.dependency_overrides[get_oracle] = lambda: fake_oracle
    yield TestClient(app)
    app.dependency_overrides.clear()
