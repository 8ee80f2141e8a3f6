"""
Cache database setup script.
Creates the roof estimate cache table if it doesn't exist and drops expired rows.
"""
from roofai.core.config import settings
from roofai.core.roof_cache import DurableCache

if __name__ == "__main__":
    print(f"Preparing roof cache at {settings.CACHE_DATABASE_URL}...")
    cache = DurableCache.from_url(settings.CACHE_DATABASE_URL, ttl_seconds=settings.CACHE_TTL_HOURS * 3600)
    deleted = cache.purge_expired()
    print(f"✅ Cache table ready ({deleted} expired entries removed)")
