from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator
from typing import Optional, List, Any
from enum import Enum

from roofai.core.property_classifier import PropertyCategory, classify_property_type


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RoofShape(str, Enum):
    SIMPLE = "simple"
    COMPLEX = "complex"
    UNKNOWN = "unknown"


class RoofPitch(str, Enum):
    FLAT = "flat"
    LOW = "low"
    MODERATE = "moderate"
    STEEP = "steep"
    UNKNOWN = "unknown"


class EstimateMethod(str, Enum):
    """Provenance tag attached to every estimate."""
    USER_PROVIDED = "user_provided"
    VISION = "openai_vision"
    PROPERTY_DATA = "property_data_calculation"
    DEFAULT = "default_estimate"


CONFIDENCE_RANKS = {
    "high": 3,
    "medium": 2,
    "low": 1,
}


def confidence_rank(value: Any) -> int:
    """Numeric rank for sorting; unrecognized labels rank 0."""
    if isinstance(value, Confidence):
        value = value.value
    if not isinstance(value, str):
        return 0
    return CONFIDENCE_RANKS.get(value.strip().lower(), 0)


class Coordinates(BaseModel):
    """WGS84 point. Used for request locations and polygon vertices."""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class PropertyRecord(BaseModel):
    """Public property record, normalized at the boundary."""
    model_config = ConfigDict(populate_by_name=True)

    property_type: PropertyCategory = Field(
        PropertyCategory.UNKNOWN,
        validation_alias=AliasChoices("propertyType", "property_type"),
        serialization_alias="propertyType",
    )
    # Total across all stories
    building_size_sqft: Optional[float] = Field(
        None,
        gt=0,
        validation_alias=AliasChoices("buildingSizeSqFt", "buildingSize", "building_size_sqft"),
        serialization_alias="buildingSizeSqFt",
    )
    stories: int = Field(1, ge=1)
    year_built: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("yearBuilt", "year_built"),
        serialization_alias="yearBuilt",
    )
    roof_type: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("roofType", "roof_type"),
        serialization_alias="roofType",
    )

    @field_validator("property_type", mode="before")
    @classmethod
    def _normalize_property_type(cls, value):
        return classify_property_type(value)

    @field_validator("stories", mode="before")
    @classmethod
    def _default_stories(cls, value):
        return 1 if value in (None, "", 0) else value

    @property
    def footprint_sqft(self) -> Optional[float]:
        """Ground-floor area: building size divided by story count."""
        if not self.building_size_sqft:
            return None
        return self.building_size_sqft / self.stories

    def summary(self) -> str:
        """One-line description used as vision prompt context."""
        category = self.property_type.value.replace("_", " ")
        parts = [f"This is a {category} property"]
        if self.building_size_sqft:
            parts.append(f"with {self.building_size_sqft:.0f} square feet of living space")
        parts.append(f"and {self.stories} {'story' if self.stories == 1 else 'stories'}")
        text = " ".join(parts) + "."
        if self.year_built:
            text += f" Built in {self.year_built}."
        if self.roof_type:
            text += f" Recorded roof type: {self.roof_type}."
        return text


class RoofEstimate(BaseModel):
    """Reconciled roof measurement returned by every estimator."""
    model_config = ConfigDict(populate_by_name=True)

    area_sqft: float = Field(ge=0, allow_inf_nan=False, alias="areaSqFt")
    confidence: Confidence
    roof_shape: RoofShape = Field(RoofShape.UNKNOWN, alias="roofShape")
    estimated_pitch: RoofPitch = Field(RoofPitch.UNKNOWN, alias="estimatedPitch")
    polygon: List[Coordinates] = Field(default_factory=list, alias="roofPolygon")
    method: EstimateMethod
    notes: str = ""
    zoom: Optional[int] = None
    included_features: List[str] = Field(default_factory=list, alias="includedFeatures")

    @property
    def has_polygon(self) -> bool:
        return len(self.polygon) >= 3

    def with_note(self, note: str, **updates) -> "RoofEstimate":
        """Copy with updated fields and the note appended to the rationale."""
        notes = f"{self.notes} {note}".strip() if self.notes else note
        return self.model_copy(update={**updates, "notes": notes})
