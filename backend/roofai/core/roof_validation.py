"""
Industry-standard bounding and cross-validation of vision estimates.

Two stages run after the best vision result is selected:

1. IndustryStandardAdjuster - one-directional floor. Automated measurements
   that come in under what the footprint and pitch imply are raised to a
   contractor-conservative minimum.
2. CrossValidator - two-sided check against the property-based expected
   range. Zero or low-confidence under-range results are replaced by the
   property-based estimate; over-range results that are not high confidence
   are capped and demoted to medium.

Neither stage fabricates a polygon: an existing polygon is rescaled to the
corrected area, a missing one stays missing.
"""

import logging
import math
from typing import Dict, Optional, Tuple

from roofai.core.geometry import scale_polygon_to_area
from roofai.core.property_classifier import PropertyCategory
from roofai.core.property_estimator import estimate_from_property
from roofai.schemas.roof import (
    Confidence,
    Coordinates,
    PropertyRecord,
    RoofEstimate,
    RoofPitch,
    RoofShape,
)

logger = logging.getLogger(__name__)


# Minimum roof/footprint ratio by reported pitch (single-family)
SINGLE_FAMILY_MIN_FACTORS = {
    RoofPitch.STEEP: 1.4,
    RoofPitch.MODERATE: 1.25,
    RoofPitch.LOW: 1.15,
}
DEFAULT_MIN_FACTOR = 1.2
COMPLEX_SHAPE_BONUS = 0.1

# Expected roof/footprint range for cross-validation
EXPECTED_RANGES: Dict[PropertyCategory, Tuple[float, float]] = {
    PropertyCategory.SINGLE_FAMILY: (1.0, 1.8),
}
DEFAULT_EXPECTED_RANGE = (0.9, 1.5)


def _at_least(value: float) -> int:
    """Smallest whole sq ft not below value (float noise trimmed first)."""
    return math.ceil(round(value, 6))


def _at_most(value: float) -> int:
    """Largest whole sq ft not above value (float noise trimmed first)."""
    return math.floor(round(value, 6))


def _rescaled_polygon(estimate: RoofEstimate, area: float):
    if not estimate.has_polygon:
        return estimate.polygon
    polygon, _ = scale_polygon_to_area(estimate.polygon, area)
    return polygon


class IndustryStandardAdjuster:
    """Raise vision estimates that fall below the pitch-dependent floor."""

    def minimum_factor(self, estimate: RoofEstimate) -> float:
        factor = SINGLE_FAMILY_MIN_FACTORS.get(estimate.estimated_pitch, DEFAULT_MIN_FACTOR)
        if estimate.roof_shape == RoofShape.COMPLEX:
            factor += COMPLEX_SHAPE_BONUS
        return factor

    def adjust(self, estimate: RoofEstimate, record: Optional[PropertyRecord]) -> RoofEstimate:
        footprint = record.footprint_sqft if record else None
        if not footprint:
            return estimate
        if record.property_type != PropertyCategory.SINGLE_FAMILY:
            return estimate
        # Zero area is a detection failure, handled by the cross-validator
        if estimate.area_sqft <= 0:
            return estimate

        factor = self.minimum_factor(estimate)
        floor = _at_least(footprint * factor)
        if estimate.area_sqft >= floor:
            return estimate

        logger.info(
            f"  [ADJUST] Raising {estimate.area_sqft:.0f} sq ft to industry minimum "
            f"{floor} sq ft ({factor:.2f} x {footprint:.0f} footprint)"
        )
        return estimate.with_note(
            f"Raised from {estimate.area_sqft:.0f} to {floor} sq ft: industry minimum for a "
            f"{estimate.estimated_pitch.value}-pitch {estimate.roof_shape.value} roof "
            f"is {factor:.2f}x the {footprint:.0f} sq ft footprint.",
            area_sqft=float(floor),
            polygon=_rescaled_polygon(estimate, floor),
        )


class CrossValidator:
    """Compare a vision estimate against the property-based expected range."""

    def expected_range(self, record: PropertyRecord) -> Tuple[int, int]:
        low, high = EXPECTED_RANGES.get(record.property_type, DEFAULT_EXPECTED_RANGE)
        footprint = record.footprint_sqft
        return _at_least(footprint * low), _at_most(footprint * high)

    def validate(
        self,
        estimate: RoofEstimate,
        record: Optional[PropertyRecord],
        location: Optional[Coordinates] = None,
    ) -> RoofEstimate:
        footprint = record.footprint_sqft if record else None
        if not footprint:
            return estimate

        min_expected, max_expected = self.expected_range(record)
        area = estimate.area_sqft

        if area == 0:
            logger.warning("  [VALIDATE] Vision detected no roof - using property-based estimate")
            return estimate_from_property(record, location)

        if area < min_expected:
            if estimate.confidence == Confidence.LOW:
                logger.warning(
                    f"  [VALIDATE] Low-confidence {area:.0f} sq ft below expected "
                    f"{min_expected} sq ft - using property-based estimate"
                )
                return estimate_from_property(record, location)

            logger.info(f"  [VALIDATE] Raising {area:.0f} sq ft to expected minimum {min_expected} sq ft")
            return estimate.with_note(
                f"Raised from {area:.0f} to {min_expected} sq ft to match the "
                f"{footprint:.0f} sq ft building footprint.",
                area_sqft=float(min_expected),
                polygon=_rescaled_polygon(estimate, min_expected),
            )

        if area > max_expected and estimate.confidence != Confidence.HIGH:
            logger.info(f"  [VALIDATE] Capping {area:.0f} sq ft at expected maximum {max_expected} sq ft")
            return estimate.with_note(
                f"Capped from {area:.0f} to {max_expected} sq ft: exceeds the expected range "
                f"for a {footprint:.0f} sq ft footprint.",
                area_sqft=float(max_expected),
                confidence=Confidence.MEDIUM,
                polygon=_rescaled_polygon(estimate, max_expected),
            )

        return estimate
