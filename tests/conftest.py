"""
Pytest configuration and fixtures for RoofAI tests.

Provides reusable test fixtures for:
- Locations and property records
- Roof polygons
- PNG image bytes
- Two-tier caches backed by a temporary SQLite file
- Vision analysis results
"""

import pytest
from io import BytesIO

from PIL import Image

from roofai.core.roof_cache import DurableCache, MemoryCache, RoofEstimateCache
from roofai.core.vlm_analysis_service import VisionRoofAnalysis
from roofai.schemas.roof import Coordinates, PropertyRecord


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_vision(area, confidence="medium", zoom=20, **extra) -> VisionRoofAnalysis:
    """Build a parsed vision result the way the analyzer would return it."""
    data = {"roofArea": area, "confidence": confidence, **extra}
    return VisionRoofAnalysis.model_validate(data).model_copy(update={"zoom": zoom})


# =============================================================================
# LOCATION / PROPERTY FIXTURES
# =============================================================================

@pytest.fixture
def location() -> Coordinates:
    """Suburban Denver house."""
    return Coordinates(lat=39.7392, lng=-104.9903)


@pytest.fixture
def single_family_record() -> PropertyRecord:
    """Single-family, 2400 sq ft, one story (footprint 2400)."""
    return PropertyRecord(property_type="single_family", building_size_sqft=2400, stories=1)


@pytest.fixture
def two_story_record() -> PropertyRecord:
    """Single-family, 4000 sq ft over two stories (footprint 2000)."""
    return PropertyRecord(property_type="Single Family", building_size_sqft=4000, stories=2)


# =============================================================================
# GEOMETRY FIXTURES
# =============================================================================

@pytest.fixture
def l_shaped_polygon(location) -> list:
    """Irregular L-shaped roof outline around the test location (open ring)."""
    d = 0.0001
    lat, lng = location.lat, location.lng
    return [
        Coordinates(lat=lat, lng=lng),
        Coordinates(lat=lat, lng=lng + 3 * d),
        Coordinates(lat=lat + d, lng=lng + 3 * d),
        Coordinates(lat=lat + d, lng=lng + d),
        Coordinates(lat=lat + 2 * d, lng=lng + d),
        Coordinates(lat=lat + 2 * d, lng=lng),
    ]


# =============================================================================
# IMAGE FIXTURES
# =============================================================================

@pytest.fixture
def png_bytes() -> bytes:
    """Small valid PNG image."""
    buffer = BytesIO()
    Image.new("RGB", (8, 8), color=(90, 90, 90)).save(buffer, format="PNG")
    return buffer.getvalue()


# =============================================================================
# CACHE FIXTURES
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def durable_cache(tmp_path, clock) -> DurableCache:
    return DurableCache.from_url(f"sqlite:///{tmp_path / 'roof_cache.db'}", clock=clock)


@pytest.fixture
def roof_cache(durable_cache, clock) -> RoofEstimateCache:
    return RoofEstimateCache(memory=MemoryCache(clock=clock), durable=durable_cache, clock=clock)
