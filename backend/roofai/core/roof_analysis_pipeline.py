"""
RoofAnalysisPipeline - reconciliation orchestrator.

Main entry point for estimating a roof from a location:

    CacheLookup -> Sampling -> Analyzing -> Selecting -> Adjusting
        -> Validating -> CacheWrite -> Done

with Fallback reachable from Sampling/Analyzing when nothing usable comes
back. The fallback order is an explicit list of estimator attempts, each
returning an estimate or None; the first success wins:

    1. vision        (satellite images x zoom levels -> vision model)
    2. property data (footprint x category multiplier)
    3. default       (fixed 2500 sq ft, low confidence)

User-provided measurements bypass all of it.

Design Principles:
- Failures are absorbed per zoom level and per estimator
- Zoom pipelines are independent; one failing never cancels the others
- Callers always get a RoofEstimate with an honest confidence label
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from roofai.core.exceptions import InsufficientPropertyData, VisionAnalysisError
from roofai.core.property_estimator import default_estimate, estimate_from_property
from roofai.core.roof_cache import RoofEstimateCache
from roofai.core.roof_validation import CrossValidator, IndustryStandardAdjuster
from roofai.core.satellite_service import ImageSampler, ZoomSample
from roofai.core.vlm_analysis_service import VisionAnalysisService, VisionRoofAnalysis
from roofai.schemas.roof import (
    Confidence,
    Coordinates,
    EstimateMethod,
    PropertyRecord,
    RoofEstimate,
    RoofPitch,
    RoofShape,
)

logger = logging.getLogger(__name__)


DEFAULT_ZOOM_LEVELS = (21, 20, 19)
HIGH_CONFIDENCE_RANK = 3

# Results worth persisting; the fixed default is not cached so a later call can recover
CACHEABLE_METHODS = {EstimateMethod.VISION, EstimateMethod.PROPERTY_DATA}


class PipelineState(str, Enum):
    CACHE_LOOKUP = "cache_lookup"
    SAMPLING = "sampling"
    ANALYZING = "analyzing"
    SELECTING = "selecting"
    ADJUSTING = "adjusting"
    VALIDATING = "validating"
    FALLBACK = "fallback"
    CACHE_WRITE = "cache_write"
    DONE = "done"


def select_best_analysis(analyses: Sequence[VisionRoofAnalysis]) -> Optional[VisionRoofAnalysis]:
    """
    Pick the best zoom-level result.

    Order: confidence rank (desc), non-zero area before zero, zoom (desc).
    """
    if not analyses:
        return None
    return sorted(
        analyses,
        key=lambda a: (-a.confidence_rank, a.roof_area <= 0, -(a.zoom or 0)),
    )[0]


def manual_estimate(area_sqft: float) -> RoofEstimate:
    return RoofEstimate(
        area_sqft=area_sqft,
        confidence=Confidence.HIGH,
        roof_shape=RoofShape.UNKNOWN,
        estimated_pitch=RoofPitch.UNKNOWN,
        method=EstimateMethod.USER_PROVIDED,
        notes="Roof area provided by the user.",
    )


class RoofAnalysisPipeline:
    """
    Reconcile vision, property-record and default estimates into one result.

    Usage:
        pipeline = RoofAnalysisPipeline(sampler, analyzer, cache)
        estimate = await pipeline.estimate_roof_area(39.7392, -104.9903, record)
    """

    def __init__(
        self,
        sampler: ImageSampler,
        analyzer: VisionAnalysisService,
        cache: RoofEstimateCache,
        zoom_levels: Sequence[int] = DEFAULT_ZOOM_LEVELS,
        request_timeout: float = 45.0,
        retry_backoff_seconds: float = 0.5,
        short_circuit_on_high_confidence: bool = True,
        adjuster: Optional[IndustryStandardAdjuster] = None,
        validator: Optional[CrossValidator] = None,
    ):
        self.sampler = sampler
        self.analyzer = analyzer
        self.cache = cache
        self.zoom_levels = list(zoom_levels)
        self.request_timeout = request_timeout
        self.retry_backoff_seconds = retry_backoff_seconds
        self.short_circuit_on_high_confidence = short_circuit_on_high_confidence
        self.adjuster = adjuster or IndustryStandardAdjuster()
        self.validator = validator or CrossValidator()

    async def estimate_roof_area(
        self,
        lat: float,
        lng: float,
        property_record: Optional[PropertyRecord] = None,
        manual_area_sqft: Optional[float] = None,
    ) -> RoofEstimate:
        """
        Estimate the roof at a location.

        Args:
            lat: Latitude of the building
            lng: Longitude of the building
            property_record: Optional public record (size, stories, type)
            manual_area_sqft: User-measured area; always wins when positive

        Returns:
            RoofEstimate - never raises for missing imagery or data
        """
        location = Coordinates(lat=lat, lng=lng)

        logger.info(f"")
        logger.info(f"{'='*60}")
        logger.info(f"ROOF ANALYSIS PIPELINE: ({location.lat:.6f}, {location.lng:.6f})")
        if property_record:
            logger.info(
                f"   Property: {property_record.property_type.value}, "
                f"{property_record.building_size_sqft or 'unknown'} sq ft, {property_record.stories} stories"
            )
        logger.info(f"{'='*60}")

        if manual_area_sqft is not None and manual_area_sqft > 0:
            logger.info(f"  [PIPELINE] Using user-provided area: {manual_area_sqft:.0f} sq ft")
            return manual_estimate(manual_area_sqft)

        self._enter(PipelineState.CACHE_LOOKUP)
        cached = await self.cache.get(location, property_record)
        if cached is not None:
            self._enter(PipelineState.DONE)
            return cached

        estimate = None
        for name, attempt in self._estimator_attempts(location, property_record):
            estimate = await attempt()
            if estimate is not None and estimate.area_sqft > 0:
                logger.info(f"  [PIPELINE] Estimator '{name}' succeeded")
                break
            logger.info(f"  [PIPELINE] Estimator '{name}' produced no result")
            self._enter(PipelineState.FALLBACK)

        if estimate.method in CACHEABLE_METHODS:
            self._enter(PipelineState.CACHE_WRITE)
            await self.cache.set(location, property_record, estimate)

        self._enter(PipelineState.DONE)
        logger.info(
            f"  [PIPELINE] Result: {estimate.area_sqft:.0f} sq ft, "
            f"confidence={estimate.confidence.value}, method={estimate.method.value}"
        )
        return estimate

    def _estimator_attempts(
        self,
        location: Coordinates,
        record: Optional[PropertyRecord],
    ) -> List[Tuple[str, Callable[[], Awaitable[Optional[RoofEstimate]]]]]:
        async def vision():
            return await self._vision_estimate(location, record)

        async def property_data():
            try:
                return estimate_from_property(record, location)
            except InsufficientPropertyData as e:
                logger.info(f"  [PIPELINE] {e}")
                return None

        async def fallback_default():
            return default_estimate(location)

        return [
            ("vision", vision),
            ("property_data", property_data),
            ("default", fallback_default),
        ]

    # ============================================================
    # VISION ESTIMATOR
    # ============================================================

    async def _vision_estimate(
        self,
        location: Coordinates,
        record: Optional[PropertyRecord],
    ) -> Optional[RoofEstimate]:
        try:
            return await asyncio.wait_for(
                self._run_vision(location, record),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"  [PIPELINE] Vision analysis exceeded {self.request_timeout:.0f}s")
            return None
        except Exception as e:
            logger.error(f"  [PIPELINE] Vision analysis crashed: {e}", exc_info=True)
            return None

    async def _run_vision(
        self,
        location: Coordinates,
        record: Optional[PropertyRecord],
    ) -> Optional[RoofEstimate]:
        self._enter(PipelineState.SAMPLING)
        samples = await self._sample_with_retry(location)
        images = [s for s in samples if s.is_valid]
        if not images:
            logger.warning("  [PIPELINE] No satellite imagery at any zoom level")
            return None

        self._enter(PipelineState.ANALYZING)
        analyses = await self._analyze_samples(images, location, record)

        self._enter(PipelineState.SELECTING)
        best = select_best_analysis(analyses)
        if best is None:
            logger.warning("  [PIPELINE] Vision analysis failed at every zoom level")
            return None
        logger.info(
            f"  [PIPELINE] Best result: zoom {best.zoom}, {best.roof_area:.0f} sq ft, "
            f"confidence={best.confidence} ({len(analyses)} candidate(s))"
        )

        self._enter(PipelineState.ADJUSTING)
        adjusted = self.adjuster.adjust(best.to_estimate(), record)

        self._enter(PipelineState.VALIDATING)
        estimate = self.validator.validate(adjusted, record, location)

        if estimate.area_sqft <= 0:
            logger.warning("  [PIPELINE] Vision result has no roof area")
            return None
        return estimate

    async def _sample_with_retry(self, location: Coordinates) -> List[ZoomSample]:
        """Fetch all zoom levels; retry transient failures once after a short backoff."""
        samples = await self.sampler.sample(location, self.zoom_levels)

        retry = [s for s in samples if not s.is_valid and s.transient]
        if not retry:
            return samples

        logger.info(f"  [PIPELINE] Retrying zoom levels {[s.zoom for s in retry]}")
        await asyncio.sleep(self.retry_backoff_seconds)
        retried = await asyncio.gather(
            *(self.sampler.fetch_zoom(location, s.zoom) for s in retry),
            return_exceptions=True,
        )

        by_zoom = {}
        for sample, result in zip(retry, retried):
            if isinstance(result, Exception):
                logger.error(f"  [PIPELINE] Zoom {sample.zoom} retry crashed: {result}")
                continue
            by_zoom[sample.zoom] = result
        return [by_zoom.get(s.zoom, s) for s in samples]

    async def _analyze_one(
        self,
        sample: ZoomSample,
        location: Coordinates,
        record: Optional[PropertyRecord],
    ) -> Optional[VisionRoofAnalysis]:
        try:
            return await self.analyzer.analyze_roof(sample.image, location, record, zoom=sample.zoom)
        except VisionAnalysisError as e:
            logger.warning(f"  [PIPELINE] Zoom {sample.zoom} excluded: {e}")
            return None
        except Exception as e:
            logger.error(f"  [PIPELINE] Zoom {sample.zoom} analysis crashed: {e}", exc_info=True)
            return None

    async def _analyze_samples(
        self,
        samples: Sequence[ZoomSample],
        location: Coordinates,
        record: Optional[PropertyRecord],
    ) -> List[VisionRoofAnalysis]:
        tasks = [asyncio.create_task(self._analyze_one(s, location, record)) for s in samples]
        analyses: List[VisionRoofAnalysis] = []

        try:
            for next_done in asyncio.as_completed(tasks):
                analysis = await next_done
                if analysis is None:
                    continue
                analyses.append(analysis)

                if (
                    self.short_circuit_on_high_confidence
                    and analysis.confidence_rank == HIGH_CONFIDENCE_RANK
                    and analysis.roof_area > 0
                ):
                    logger.info(f"  [PIPELINE] High confidence at zoom {analysis.zoom} - skipping the rest")
                    break
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return analyses

    def _enter(self, state: PipelineState) -> None:
        logger.debug(f"  [PIPELINE] -> {state.value}")
