from roofai.models.roof_cache_entry import RoofCacheEntry

__all__ = ["RoofCacheEntry"]
