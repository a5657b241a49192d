"""
Database models for the fills cache
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class FillsCacheEntry(Base):
    """Raw fills and token labels for one market slug, stored as opaque JSON"""
    __tablename__ = "fills_cache"

    market_slug = Column(String(255), primary_key=True)

    # token_id -> outcome label
    token_outcomes = Column(JSON, nullable=False, default=dict)

    # token_id -> list of raw subgraph events (camelCase dicts)
    token_fills = Column(JSON, nullable=False, default=dict)

    total_fills = Column(Integer, default=0)

    cached_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_fills_cache_cached_at', 'cached_at'),
    )

    def __repr__(self):
        return f"<FillsCacheEntry {self.market_slug} fills={self.total_fills}>"
