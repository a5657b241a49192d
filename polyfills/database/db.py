"""
Database initialization, session management and the fills cache.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from loguru import logger

from .models import Base, FillsCacheEntry
from ..core.models import RawFillEvent, TokenOutcomes


@dataclass
class CachedFills:
    """Fills loaded back from the cache"""
    market_slug: str
    token_outcomes: TokenOutcomes
    token_fills: Dict[str, List[RawFillEvent]]
    total_fills: int
    cached_at: Optional[datetime] = None


class Database:
    """Async SQLite connection and session management"""

    def __init__(self, db_path: str = "polyfills_cache.db"):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or full connection URL
        """
        if db_path.startswith("sqlite"):
            self.db_url = db_path
        else:
            self.db_url = f"sqlite+aiosqlite:///{db_path}"

        self.async_engine = None
        self.AsyncSessionLocal = None
        self._async_initialized = False

    async def initialize(self):
        """Initialize async database connection and create tables"""
        if self._async_initialized:
            return

        self.async_engine = create_async_engine(self.db_url, echo=False)

        async with self.async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.AsyncSessionLocal = async_sessionmaker(
            self.async_engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        self._async_initialized = True
        logger.info(f"Cache database initialized at {self.db_url}")

    async def close(self):
        """Close async database connection"""
        if self.async_engine:
            await self.async_engine.dispose()
            self._async_initialized = False

    @asynccontextmanager
    async def session(self):
        """Get an async database session with automatic cleanup"""
        if not self._async_initialized:
            await self.initialize()

        async with self.AsyncSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"Database error: {e}")
                raise

    # ==================== Fills cache ====================

    async def save_fills(
        self,
        market_slug: str,
        token_fills: Dict[str, List[RawFillEvent]],
        token_outcomes: TokenOutcomes,
    ) -> int:
        """Store (or replace) the raw fills for a market. Returns the fill count."""
        total_fills = sum(len(fills) for fills in token_fills.values())

        entry = FillsCacheEntry(
            market_slug=market_slug,
            token_outcomes=dict(token_outcomes),
            token_fills={
                token_id: [f.to_dict() for f in fills]
                for token_id, fills in token_fills.items()
            },
            total_fills=total_fills,
            cached_at=datetime.utcnow(),
        )

        async with self.session() as session:
            await session.merge(entry)

        logger.info(f"Cached {total_fills} fills for {market_slug}")
        return total_fills

    async def load_fills(self, market_slug: str) -> Optional[CachedFills]:
        """Load cached fills for a market, or None if absent"""
        async with self.session() as session:
            result = await session.execute(
                select(FillsCacheEntry).where(FillsCacheEntry.market_slug == market_slug)
            )
            entry = result.scalar_one_or_none()

        if entry is None:
            return None

        logger.info(f"Loaded {entry.total_fills} cached fills for {market_slug}")
        return CachedFills(
            market_slug=entry.market_slug,
            token_outcomes=dict(entry.token_outcomes or {}),
            token_fills={
                token_id: [RawFillEvent.from_dict(item) for item in items]
                for token_id, items in (entry.token_fills or {}).items()
            },
            total_fills=entry.total_fills or 0,
            cached_at=entry.cached_at,
        )

    async def has_fills(self, market_slug: str) -> bool:
        async with self.session() as session:
            result = await session.execute(
                select(FillsCacheEntry.market_slug).where(
                    FillsCacheEntry.market_slug == market_slug
                )
            )
            return result.scalar_one_or_none() is not None

    async def clear_cache(self, market_slug: Optional[str] = None) -> int:
        """Remove one market's cache, or everything. Returns rows removed."""
        stmt = delete(FillsCacheEntry)
        if market_slug:
            stmt = stmt.where(FillsCacheEntry.market_slug == market_slug)

        async with self.session() as session:
            result = await session.execute(stmt)
            removed = result.rowcount or 0

        logger.info(f"Cleared {removed} cache entries" + (f" for {market_slug}" if market_slug else ""))
        return removed


def init_db(db_path: str = "polyfills_cache.db") -> Database:
    """Create a database handle; tables are created on first use"""
    return Database(db_path)
