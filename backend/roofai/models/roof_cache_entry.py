"""
RoofCacheEntry model - durable tier of the roof estimate cache.

One row per cache key. created_at is stored in its own column so TTL checks
never need to deserialize result_json.
"""
from sqlalchemy import Column, String, Float, Text

from roofai.db.base import Base


class RoofCacheEntry(Base):
    __tablename__ = "roof_estimate_cache"

    cache_key = Column(String(200), primary_key=True)
    created_at = Column(Float, nullable=False, index=True)  # epoch seconds
    result_json = Column(Text, nullable=False)

    def __repr__(self):
        return f"<RoofCacheEntry {self.cache_key} at={self.created_at:.0f}>"
