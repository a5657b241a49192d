"""Tests for the fills cache."""

from polyfills.core.models import RawFillEvent
from polyfills.database.db import Database, init_db


class TestFillsCache:
    async def test_save_and_load(self, db, make_raw_fill):
        token_fills = {
            "token_a": [make_raw_fill(), make_raw_fill()],
            "token_b": [make_raw_fill(maker_asset_id="0", taker_asset_id="token_b")],
        }
        outcomes = {"token_a": "Q - Yes", "token_b": "Q - No"}

        saved = await db.save_fills("my-market", token_fills, outcomes)
        cached = await db.load_fills("my-market")

        assert saved == 3
        assert cached.market_slug == "my-market"
        assert cached.total_fills == 3
        assert cached.token_outcomes == outcomes
        assert cached.token_fills == token_fills
        assert cached.cached_at is not None

    async def test_missing_slug(self, db):
        assert await db.load_fills("nope") is None
        assert await db.has_fills("nope") is False

    async def test_save_replaces_existing(self, db, make_raw_fill):
        await db.save_fills("m", {"token_a": [make_raw_fill()] * 2}, {"token_a": "Q - Yes"})
        await db.save_fills("m", {"token_a": [make_raw_fill()]}, {"token_a": "Q - Yes"})

        cached = await db.load_fills("m")
        assert cached.total_fills == 1
        assert len(cached.token_fills["token_a"]) == 1

    async def test_empty_token_lists_preserved(self, db):
        await db.save_fills("m", {"token_a": []}, {"token_a": "Q - Yes"})
        cached = await db.load_fills("m")
        assert cached.token_fills == {"token_a": []}
        assert await db.has_fills("m")

    async def test_clear_one_market(self, db):
        await db.save_fills("a", {}, {"t": "A - Yes"})
        await db.save_fills("b", {}, {"t": "B - Yes"})

        assert await db.clear_cache("a") == 1
        assert not await db.has_fills("a")
        assert await db.has_fills("b")

    async def test_clear_everything(self, db):
        await db.save_fills("a", {}, {})
        await db.save_fills("b", {}, {})
        assert await db.clear_cache() == 2
        assert not await db.has_fills("b")


class TestRawFillSerialization:
    def test_subgraph_payload_round_trip(self, make_raw_fill):
        fill = make_raw_fill(fee="1500")
        payload = fill.to_dict()
        assert payload["makerAssetId"] == "token_a"
        assert RawFillEvent.from_dict(payload) == fill

    def test_from_dict_defaults(self):
        fill = RawFillEvent.from_dict({"id": "x", "makerAssetId": 123})
        assert fill.maker_asset_id == "123"
        assert fill.maker_amount_filled == "0"
        assert fill.fee == "0"


class TestDatabaseUrl:
    def test_path_becomes_aiosqlite_url(self):
        assert Database("cache.db").db_url == "sqlite+aiosqlite:///cache.db"

    def test_full_url_kept(self):
        assert init_db("sqlite+aiosqlite://").db_url == "sqlite+aiosqlite://"
