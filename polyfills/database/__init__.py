from .models import Base, FillsCacheEntry
from .db import Database, CachedFills, init_db

__all__ = [
    'Base', 'FillsCacheEntry',
    'Database', 'CachedFills', 'init_db'
]
