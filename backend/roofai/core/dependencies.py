"""
Service construction and FastAPI dependencies.

All services are built once at startup by build_services() and stored on
app.state; request handlers receive them through the get_* dependencies.
Missing credentials fail here, at startup, never per request.
"""

import logging
from dataclasses import dataclass

from fastapi import Request
from openai import AsyncOpenAI

from roofai.core.config import Settings
from roofai.core.exceptions import ConfigurationError
from roofai.core.geocoding_service import GeocodingService
from roofai.core.property_data_service import PropertyDataService
from roofai.core.roof_analysis_pipeline import RoofAnalysisPipeline
from roofai.core.roof_cache import DurableCache, MemoryCache, RoofEstimateCache
from roofai.core.satellite_service import ImageSampler, SatelliteService
from roofai.core.vlm_analysis_service import VisionAnalysisService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    roof_pipeline: RoofAnalysisPipeline
    geocoding_service: GeocodingService
    property_data_service: PropertyDataService
    satellite_service: SatelliteService
    vision_client: AsyncOpenAI

    async def aclose(self) -> None:
        await self.satellite_service.aclose()
        await self.geocoding_service.aclose()
        await self.property_data_service.aclose()
        await self.vision_client.close()


def build_services(settings: Settings) -> ServiceContainer:
    """Construct every service from settings. Raises ConfigurationError."""
    missing = [
        name for name in ("GOOGLE_MAPS_KEY", "OPENAI_API_KEY")
        if not getattr(settings, name)
    ]
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")
    if not settings.ZOOM_LEVELS:
        raise ConfigurationError("ZOOM_LEVELS must contain at least one zoom level")

    ttl_seconds = settings.CACHE_TTL_HOURS * 3600

    satellite_service = SatelliteService(
        api_key=settings.GOOGLE_MAPS_KEY,
        timeout=settings.IMAGE_FETCH_TIMEOUT,
        size=settings.IMAGE_SIZE,
        scale=settings.IMAGE_SCALE,
    )

    vision_client = AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
    )
    analyzer = VisionAnalysisService(
        client=vision_client,
        model=settings.VISION_MODEL,
        timeout=settings.VISION_TIMEOUT,
    )

    cache = RoofEstimateCache(
        memory=MemoryCache(ttl_seconds=ttl_seconds),
        durable=DurableCache.from_url(settings.CACHE_DATABASE_URL, ttl_seconds=ttl_seconds),
    )

    pipeline = RoofAnalysisPipeline(
        sampler=ImageSampler(satellite_service),
        analyzer=analyzer,
        cache=cache,
        zoom_levels=settings.ZOOM_LEVELS,
        request_timeout=settings.REQUEST_TIMEOUT,
        retry_backoff_seconds=settings.RETRY_BACKOFF_SECONDS,
        short_circuit_on_high_confidence=settings.SHORT_CIRCUIT_ON_HIGH_CONFIDENCE,
    )

    property_data_service = PropertyDataService(
        api_key=settings.RENTCAST_API_KEY,
        base_url=settings.RENTCAST_API_URL,
    )
    if not property_data_service.is_configured:
        logger.warning("RENTCAST_API_KEY not set - address analysis will run without property records")

    logger.info(
        f"Roof analysis services ready (model={settings.VISION_MODEL}, zooms={settings.ZOOM_LEVELS})"
    )

    return ServiceContainer(
        roof_pipeline=pipeline,
        geocoding_service=GeocodingService(settings.GOOGLE_MAPS_KEY, timeout=settings.GEOCODE_TIMEOUT),
        property_data_service=property_data_service,
        satellite_service=satellite_service,
        vision_client=vision_client,
    )


def get_roof_pipeline(request: Request) -> RoofAnalysisPipeline:
    return request.app.state.services.roof_pipeline


def get_geocoding_service(request: Request) -> GeocodingService:
    return request.app.state.services.geocoding_service


def get_property_data_service(request: Request) -> PropertyDataService:
    return request.app.state.services.property_data_service
