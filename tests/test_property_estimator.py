"""
Tests for property type classification and property-based estimates.
"""

import pytest

from roofai.core.exceptions import InsufficientPropertyData
from roofai.core.geometry import polygon_area_sqft
from roofai.core.property_classifier import PropertyCategory, classify_property_type
from roofai.core.property_estimator import (
    DEFAULT_ROOF_AREA_SQFT,
    default_estimate,
    estimate_from_property,
)
from roofai.schemas.roof import (
    Confidence,
    EstimateMethod,
    PropertyRecord,
    RoofPitch,
    RoofShape,
)


class TestClassifier:

    @pytest.mark.parametrize("raw,expected", [
        ("single_family", PropertyCategory.SINGLE_FAMILY),
        ("Single Family", PropertyCategory.SINGLE_FAMILY),
        ("single-family", PropertyCategory.SINGLE_FAMILY),
        ("Townhouse", PropertyCategory.TOWNHOUSE),
        ("Single Family Townhome", PropertyCategory.TOWNHOUSE),
        ("Condo", PropertyCategory.CONDO),
        ("Apartment", PropertyCategory.CONDO),
        ("Multi-Family", PropertyCategory.MULTI_FAMILY),
        ("Duplex", PropertyCategory.MULTI_FAMILY),
        ("Manufactured", PropertyCategory.SINGLE_FAMILY),
        ("Commercial", PropertyCategory.COMMERCIAL),
        ("Land", PropertyCategory.UNKNOWN),
        ("", PropertyCategory.UNKNOWN),
        (None, PropertyCategory.UNKNOWN),
    ])
    def test_classification(self, raw, expected):
        assert classify_property_type(raw) == expected

    def test_enum_passthrough(self):
        assert classify_property_type(PropertyCategory.CONDO) is PropertyCategory.CONDO

    def test_record_normalizes_at_boundary(self):
        record = PropertyRecord.model_validate({"propertyType": "Townhouse", "buildingSize": 1800})
        assert record.property_type == PropertyCategory.TOWNHOUSE
        assert record.building_size_sqft == 1800
        assert record.stories == 1

    def test_missing_stories_treated_as_one(self):
        record = PropertyRecord(property_type="condo", building_size_sqft=900, stories=None)
        assert record.stories == 1
        assert record.footprint_sqft == 900


class TestPropertyEstimate:

    def test_single_family_one_story(self, single_family_record):
        estimate = estimate_from_property(single_family_record)
        assert estimate.area_sqft == 3360
        assert estimate.confidence == Confidence.MEDIUM
        assert estimate.method == EstimateMethod.PROPERTY_DATA
        assert estimate.roof_shape == RoofShape.COMPLEX
        assert estimate.estimated_pitch == RoofPitch.MODERATE
        assert estimate.polygon == []

    def test_two_stories_use_footprint(self, two_story_record):
        estimate = estimate_from_property(two_story_record)
        assert estimate.area_sqft == 2800
        # Footprint exactly 2000 is not "complex"
        assert estimate.roof_shape == RoofShape.SIMPLE

    @pytest.mark.parametrize("category,size,expected", [
        ("townhouse", 1000, 1250),
        ("condo", 1000, 1100),
        ("multi_family", 3000, 3300),
        ("commercial", 10000, 10500),
        ("unknown", 1000, 1200),
    ])
    def test_category_multipliers(self, category, size, expected):
        record = PropertyRecord(property_type=category, building_size_sqft=size)
        assert estimate_from_property(record).area_sqft == expected

    def test_commercial_is_flat(self):
        record = PropertyRecord(property_type="commercial", building_size_sqft=5000)
        assert estimate_from_property(record).estimated_pitch == RoofPitch.FLAT

    def test_never_high_confidence(self):
        for category in PropertyCategory:
            record = PropertyRecord(property_type=category, building_size_sqft=1500)
            assert estimate_from_property(record).confidence != Confidence.HIGH

    def test_synthetic_polygon_with_location(self, single_family_record, location):
        estimate = estimate_from_property(single_family_record, location)
        assert len(estimate.polygon) == 4
        assert polygon_area_sqft(estimate.polygon) == pytest.approx(3360, rel=0.01)

    def test_missing_building_size_raises(self):
        with pytest.raises(InsufficientPropertyData):
            estimate_from_property(PropertyRecord(property_type="single_family"))

    def test_missing_record_raises(self):
        with pytest.raises(InsufficientPropertyData):
            estimate_from_property(None)


class TestDefaultEstimate:

    def test_default(self):
        estimate = default_estimate()
        assert estimate.area_sqft == DEFAULT_ROOF_AREA_SQFT == 2500
        assert estimate.confidence == Confidence.LOW
        assert estimate.method == EstimateMethod.DEFAULT
        assert estimate.polygon == []

    def test_default_with_location(self, location):
        estimate = default_estimate(location)
        assert polygon_area_sqft(estimate.polygon) == pytest.approx(2500, rel=0.01)
