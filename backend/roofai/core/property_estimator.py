"""
Property-based roof area estimation.

Derives an expected roof area from public records: footprint (building size
divided by stories) times a category multiplier covering pitch and
overhangs. This is a heuristic, so it never reports high confidence.
"""

import logging
from typing import Optional

from roofai.core.exceptions import InsufficientPropertyData
from roofai.core.geometry import synthetic_polygon
from roofai.core.property_classifier import PropertyCategory
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


DEFAULT_ROOF_AREA_SQFT = 2500

# Footprint -> roof surface multipliers (pitch + overhang allowance)
ROOF_AREA_MULTIPLIERS = {
    PropertyCategory.SINGLE_FAMILY: 1.4,
    PropertyCategory.TOWNHOUSE: 1.25,
    PropertyCategory.CONDO: 1.1,
    PropertyCategory.MULTI_FAMILY: 1.1,
    PropertyCategory.COMMERCIAL: 1.05,
    PropertyCategory.UNKNOWN: 1.2,
}

# Single-family footprints above this are usually hips, valleys and wings
COMPLEX_FOOTPRINT_SQFT = 2000


def estimate_from_property(
    record: Optional[PropertyRecord],
    location: Optional[Coordinates] = None,
) -> RoofEstimate:
    """
    Estimate roof area from a property record.

    Raises:
        InsufficientPropertyData: no record or no building size.
    """
    footprint = record.footprint_sqft if record else None
    if not footprint:
        raise InsufficientPropertyData("Building size is required for a property-based estimate")

    category = record.property_type
    multiplier = ROOF_AREA_MULTIPLIERS[category]
    area = round(footprint * multiplier)

    if category == PropertyCategory.SINGLE_FAMILY:
        shape = RoofShape.COMPLEX if footprint > COMPLEX_FOOTPRINT_SQFT else RoofShape.SIMPLE
    else:
        shape = RoofShape.SIMPLE

    pitch = RoofPitch.FLAT if category == PropertyCategory.COMMERCIAL else RoofPitch.MODERATE

    logger.info(
        f"  [PROPERTY] {category.value}: footprint {footprint:.0f} sq ft x {multiplier} = {area} sq ft"
    )

    return RoofEstimate(
        area_sqft=area,
        confidence=Confidence.MEDIUM,
        roof_shape=shape,
        estimated_pitch=pitch,
        polygon=synthetic_polygon(location, area) if location else [],
        method=EstimateMethod.PROPERTY_DATA,
        notes=(
            f"Calculated from property data: {footprint:.0f} sq ft footprint "
            f"({record.stories} {'story' if record.stories == 1 else 'stories'}) "
            f"x {multiplier} {category.value.replace('_', ' ')} roof factor."
        ),
    )


def default_estimate(location: Optional[Coordinates] = None) -> RoofEstimate:
    """Fixed low-confidence estimate used when every other source failed."""
    return RoofEstimate(
        area_sqft=DEFAULT_ROOF_AREA_SQFT,
        confidence=Confidence.LOW,
        roof_shape=RoofShape.UNKNOWN,
        estimated_pitch=RoofPitch.UNKNOWN,
        polygon=synthetic_polygon(location, DEFAULT_ROOF_AREA_SQFT) if location else [],
        method=EstimateMethod.DEFAULT,
        notes="No imagery or property data available; using a typical residential roof size.",
    )
