"""Tests for FillFetcher - pagination, rate limits, concurrency, isolation."""

import pytest

from polyfills.exceptions import RateLimitError, SubgraphError
from polyfills.ingestion.fill_fetcher import FillFetcher, RetryPolicy


def _events(make_raw_fill, n, token="token_a"):
    return [make_raw_fill(maker_asset_id=token, timestamp=str(10_000 - i)) for i in range(n)]


class TestPagination:
    async def test_short_first_page_stops(self, make_raw_fill, fake_subgraph, no_sleep_policy):
        client = fake_subgraph({"token_a": _events(make_raw_fill, 3)})
        fetcher = FillFetcher(client, page_size=5, retry_policy=no_sleep_policy)

        fills = await fetcher.fetch_all("token_a")

        assert len(fills) == 3
        assert client.calls == [("token_a", 5, 0)]
        assert no_sleep_policy.recorded == []

    async def test_full_pages_then_empty(self, make_raw_fill, fake_subgraph, no_sleep_policy):
        events = _events(make_raw_fill, 10)
        client = fake_subgraph({"token_a": events})
        fetcher = FillFetcher(client, page_size=5, retry_policy=no_sleep_policy)

        fills = await fetcher.fetch_all("token_a")

        assert fills == events
        assert [skip for _, _, skip in client.calls] == [0, 5, 10]
        # Delay between pages only
        assert no_sleep_policy.recorded == [0.1, 0.1]

    async def test_partial_last_page(self, make_raw_fill, fake_subgraph, no_sleep_policy):
        client = fake_subgraph({"token_a": _events(make_raw_fill, 7)})
        fetcher = FillFetcher(client, page_size=5, retry_policy=no_sleep_policy)

        fills = await fetcher.fetch_all("token_a")

        assert len(fills) == 7
        assert [skip for _, _, skip in client.calls] == [0, 5]

    async def test_no_fills(self, fake_subgraph, no_sleep_policy):
        fetcher = FillFetcher(fake_subgraph(), page_size=5, retry_policy=no_sleep_policy)
        assert await fetcher.fetch_all("token_a") == []


class TestRateLimits:
    async def test_retries_same_page(
        self, make_raw_fill, fake_subgraph, no_sleep_policy, rate_limit_error
    ):
        client = fake_subgraph(
            {"token_a": _events(make_raw_fill, 7)},
            errors={"token_a": [rate_limit_error, RateLimitError("rate limit exceeded")]},
        )
        fetcher = FillFetcher(client, page_size=5, retry_policy=no_sleep_policy)

        fills = await fetcher.fetch_all("token_a")

        assert len(fills) == 7
        assert [skip for _, _, skip in client.calls] == [0, 0, 0, 5]
        assert no_sleep_policy.recorded == [60.0, 60.0, 0.1]
        assert fetcher.get_stats()["rate_limit_hits"] == 2

    async def test_bounded_retries_raise(self, fake_subgraph, rate_limit_error):
        sleeps = []

        async def _sleep(seconds):
            sleeps.append(seconds)

        client = fake_subgraph(errors={"token_a": [rate_limit_error] * 5})
        policy = RetryPolicy(rate_limit_cooldown=1.0, max_rate_limit_retries=2, sleep=_sleep)
        fetcher = FillFetcher(client, retry_policy=policy)

        with pytest.raises(RateLimitError):
            await fetcher.fetch_all("token_a")
        assert len(client.calls) == 3
        assert sleeps == [1.0, 1.0]

    async def test_other_errors_propagate(self, fake_subgraph, no_sleep_policy):
        client = fake_subgraph(errors={"token_a": [SubgraphError("boom", status=500)]})
        fetcher = FillFetcher(client, retry_policy=no_sleep_policy)

        with pytest.raises(SubgraphError):
            await fetcher.fetch_all("token_a")
        assert len(client.calls) == 1
        assert no_sleep_policy.recorded == []


class TestFetchMany:
    async def test_results_for_every_token(self, make_raw_fill, fake_subgraph, no_sleep_policy):
        client = fake_subgraph({
            "token_a": _events(make_raw_fill, 2, "token_a"),
            "token_b": _events(make_raw_fill, 1, "token_b"),
        })
        fetcher = FillFetcher(client, retry_policy=no_sleep_policy)

        result = await fetcher.fetch_many(["token_a", "token_b", "token_c"])

        assert list(result) == ["token_a", "token_b", "token_c"]
        assert len(result["token_a"]) == 2
        assert len(result["token_b"]) == 1
        assert result["token_c"] == []
        assert fetcher.failed_tokens == []

    async def test_failed_token_isolated(self, make_raw_fill, fake_subgraph, no_sleep_policy):
        client = fake_subgraph(
            {"token_a": _events(make_raw_fill, 2)},
            errors={"token_b": [SubgraphError("boom")]},
        )
        fetcher = FillFetcher(client, retry_policy=no_sleep_policy)

        result = await fetcher.fetch_many(["token_a", "token_b"])

        assert len(result["token_a"]) == 2
        assert result["token_b"] == []
        assert fetcher.failed_tokens == ["token_b"]
        assert fetcher.get_stats()["failed_tokens"] == ["token_b"]

    async def test_concurrency_ceiling(self, make_raw_fill, fake_subgraph, no_sleep_policy):
        tokens = [f"token_{i}" for i in range(6)]
        client = fake_subgraph({t: _events(make_raw_fill, 1, t) for t in tokens})
        fetcher = FillFetcher(client, retry_policy=no_sleep_policy)

        await fetcher.fetch_many(tokens, max_concurrent=2)

        assert client.max_in_flight == 2
        assert len(client.calls) == 6

    async def test_failed_tokens_reset_between_batches(self, fake_subgraph, no_sleep_policy):
        client = fake_subgraph(errors={"token_a": [SubgraphError("boom")]})
        fetcher = FillFetcher(client, retry_policy=no_sleep_policy)

        await fetcher.fetch_many(["token_a"])
        assert fetcher.failed_tokens == ["token_a"]

        await fetcher.fetch_many(["token_a"])
        assert fetcher.failed_tokens == []
