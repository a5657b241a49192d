"""
Shared test fixtures for the fill tracker test suite.
All tests run offline with in-memory SQLite and fake API clients.
"""

import asyncio

import pytest
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from polyfills.core.models import ProcessedFill, RawFillEvent, TradeSide
from polyfills.database.db import Database
from polyfills.database.models import Base
from polyfills.exceptions import RateLimitError
from polyfills.ingestion.fill_fetcher import RetryPolicy

QUOTE = "0"


@pytest.fixture
async def db():
    """
    Create an in-memory async SQLite database for testing.
    Each test gets a completely fresh database.
    """
    database = Database.__new__(Database)
    database.db_url = "sqlite+aiosqlite://"
    database.async_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with database.async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    database.AsyncSessionLocal = async_sessionmaker(
        database.async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    database._async_initialized = True

    yield database

    await database.async_engine.dispose()


@pytest.fixture
def make_raw_fill():
    """Factory for RawFillEvent instances with unique IDs.

    Defaults to a SELL of token_a: maker gives 10 tokens for 6.5 USDC.
    """
    _counter = [0]

    def _factory(**overrides):
        _counter[0] += 1
        defaults = {
            "id": f"fill_{_counter[0]}",
            "transaction_hash": f"0xtx{_counter[0]}",
            "order_hash": f"0xorder{_counter[0]}",
            "maker": "0xmaker" + "0" * 34,
            "taker": "0xtaker" + "0" * 34,
            "maker_asset_id": "token_a",
            "taker_asset_id": QUOTE,
            "maker_amount_filled": "10000000",
            "taker_amount_filled": "6500000",
            "timestamp": str(1700000000 + _counter[0]),
            "fee": "0",
        }
        defaults.update(overrides)
        return RawFillEvent(**defaults)

    return _factory


@pytest.fixture
def make_processed_fill():
    """Factory for ProcessedFill instances."""
    _counter = [0]

    def _factory(**overrides):
        _counter[0] += 1
        defaults = {
            "outcome": "Will X happen? - Yes",
            "token_id": "token_a",
            "timestamp_unix": 1700000000 + _counter[0],
            "timestamp_pst": f"2023-11-14 14:13:{20 + _counter[0] % 40:02d} PST",
            "price": 0.5,
            "amount": 10.0,
            "side": TradeSide.BUY,
            "transaction_hash": f"0xtx{_counter[0]}",
            "order_hash": f"0xorder{_counter[0]}",
            "maker": "0xmaker" + "0" * 34,
            "taker": "0xtaker" + "0" * 34,
            "fee": "0",
        }
        defaults.update(overrides)
        return ProcessedFill(**defaults)

    return _factory


class FakeSubgraphClient:
    """In-memory stand-in for SubgraphClient.

    `fills` maps token id -> full newest-first event list, served in
    skip/first pages. `errors` maps token id -> exceptions raised (in order)
    before pages are served again.
    """

    def __init__(
        self,
        fills: Optional[Dict[str, List[RawFillEvent]]] = None,
        errors: Optional[Dict[str, List[Exception]]] = None,
    ):
        self.fills = fills or {}
        self.errors = {k: list(v) for k, v in (errors or {}).items()}
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_fills_page(self, token_id: str, first: int = 1000, skip: int = 0):
        self.calls.append((token_id, first, skip))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # Yield so concurrent fetches actually overlap
            await asyncio.sleep(0)
            pending = self.errors.get(token_id)
            if pending:
                raise pending.pop(0)
            return list(self.fills.get(token_id, [])[skip:skip + first])
        finally:
            self.in_flight -= 1

    async def close(self):
        pass


@pytest.fixture
def fake_subgraph():
    return FakeSubgraphClient


@pytest.fixture
def no_sleep_policy():
    """RetryPolicy whose sleeps are recorded instead of awaited."""
    sleeps: List[float] = []

    async def _sleep(seconds: float):
        sleeps.append(seconds)

    policy = RetryPolicy(page_delay=0.1, rate_limit_cooldown=60.0, sleep=_sleep)
    policy.recorded = sleeps
    return policy


@pytest.fixture
def rate_limit_error():
    return RateLimitError("Subgraph rate limit (HTTP 429)", status=429)
