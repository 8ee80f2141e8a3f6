"""
VLM (Vision Language Model) Roof Analysis Service

Sends a satellite image of a property to an OpenAI-compatible vision model
and parses the reply into one canonical schema (VisionRoofAnalysis).

The model is a black box with latency, failure and hallucination risk, so
the reply is validated immediately after parsing. A reply that cannot be
parsed, or that lacks roofArea/confidence, is a failure for that image:
nothing is fabricated in its place.
"""

import base64
import json
import logging
from typing import Any, List, Optional

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from roofai.core.exceptions import VisionAnalysisError
from roofai.schemas.roof import (
    Confidence,
    Coordinates,
    EstimateMethod,
    PropertyRecord,
    RoofEstimate,
    RoofPitch,
    RoofShape,
    confidence_rank,
)

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are an expert in roof analysis from satellite imagery. Your task is to:
1. Precisely identify the roof boundaries of the main building at the center of the image
2. Measure the total roof surface area in square feet
3. Determine the roof shape (simple or complex)
4. Assess the roof pitch if possible

Look for these visual cues:
- Sharp color/shadow transitions defining roof edges
- Regular geometric shapes indicating residential structures
- Roof material textures (shingles, metal, tile)
- Shadows indicating height and pitch
- Attached garages, porches and dormers that share the roof

Always respond with a single valid JSON object only, no markdown formatting."""


def _first_of(data: dict, *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _parse_vertex(point: Any) -> Optional[Coordinates]:
    try:
        if isinstance(point, dict):
            lat = _first_of(point, "lat", "latitude")
            lng = _first_of(point, "lng", "lon", "longitude")
        elif isinstance(point, (list, tuple)) and len(point) == 2:
            lat, lng = point
        else:
            return None
        if lat is None or lng is None:
            return None
        return Coordinates(lat=float(lat), lng=float(lng))
    except (TypeError, ValueError, ValidationError):
        return None


class VisionRoofAnalysis(BaseModel):
    """Canonical vision response. Accepts camelCase or snake_case keys."""
    model_config = ConfigDict(populate_by_name=True)

    roof_area: float = Field(
        ge=0, allow_inf_nan=False, validation_alias=AliasChoices("roofArea", "roof_area", "area")
    )
    confidence: str
    roof_shape: RoofShape = Field(
        RoofShape.UNKNOWN, validation_alias=AliasChoices("roofShape", "roof_shape")
    )
    roof_polygon: List[Coordinates] = Field(
        default_factory=list, validation_alias=AliasChoices("roofPolygon", "roof_polygon", "polygon")
    )
    estimated_pitch: RoofPitch = Field(
        RoofPitch.UNKNOWN, validation_alias=AliasChoices("estimatedPitch", "estimated_pitch", "pitch")
    )
    notes: str = ""
    included_features: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("includedFeaturesInArea", "included_features_in_area", "includedFeatures"),
    )
    zoom: Optional[int] = None

    @field_validator("roof_area", mode="before")
    @classmethod
    def _coerce_area(cls, value):
        if isinstance(value, bool):
            raise ValueError("roofArea must be a number")
        if isinstance(value, str):
            value = value.replace(",", "").lower().replace("sq ft", "").strip()
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value):
        if value is None or isinstance(value, (dict, list)):
            raise ValueError("confidence must be a string")
        return str(value).strip()

    @field_validator("roof_shape", mode="before")
    @classmethod
    def _coerce_shape(cls, value):
        try:
            return RoofShape(str(value).strip().lower())
        except ValueError:
            return RoofShape.UNKNOWN

    @field_validator("estimated_pitch", mode="before")
    @classmethod
    def _coerce_pitch(cls, value):
        try:
            return RoofPitch(str(value).strip().lower())
        except ValueError:
            return RoofPitch.UNKNOWN

    @field_validator("roof_polygon", mode="before")
    @classmethod
    def _coerce_polygon(cls, value):
        if not isinstance(value, list):
            return []
        vertices = [v for v in (_parse_vertex(p) for p in value) if v is not None]
        return vertices if len(vertices) >= 3 else []

    @field_validator("notes", mode="before")
    @classmethod
    def _coerce_notes(cls, value):
        return "" if value is None else str(value)

    @field_validator("included_features", mode="before")
    @classmethod
    def _coerce_features(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value]

    @property
    def confidence_rank(self) -> int:
        return confidence_rank(self.confidence)

    def to_estimate(self) -> RoofEstimate:
        """Convert to a RoofEstimate; unrecognized confidence becomes low."""
        try:
            confidence = Confidence(self.confidence.lower())
        except ValueError:
            confidence = Confidence.LOW

        return RoofEstimate(
            area_sqft=self.roof_area,
            confidence=confidence,
            roof_shape=self.roof_shape,
            estimated_pitch=self.estimated_pitch,
            polygon=self.roof_polygon,
            method=EstimateMethod.VISION,
            notes=self.notes,
            zoom=self.zoom,
            included_features=self.included_features,
        )


def extract_json_object(content: Optional[str]) -> dict:
    """Pull the single JSON object out of a model reply."""
    if not content:
        raise VisionAnalysisError("Empty response from vision model")

    # Clean up response (remove markdown if present)
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    content = content.strip()

    if not content.startswith("{"):
        start, end = content.find("{"), content.rfind("}")
        if start == -1 or end <= start:
            raise VisionAnalysisError("No JSON object in vision response")
        content = content[start:end + 1]

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise VisionAnalysisError(f"Invalid JSON response: {e}") from e

    if not isinstance(data, dict):
        raise VisionAnalysisError("Vision response JSON is not an object")
    return data


def parse_vision_response(content: Optional[str], zoom: Optional[int] = None) -> VisionRoofAnalysis:
    """Parse and validate a raw reply. Raises VisionAnalysisError."""
    data = extract_json_object(content)
    try:
        analysis = VisionRoofAnalysis.model_validate(data)
    except ValidationError as e:
        raise VisionAnalysisError(f"Vision response failed validation: {e.error_count()} error(s)") from e
    if zoom is not None:
        analysis = analysis.model_copy(update={"zoom": zoom})
    return analysis


class VisionAnalysisService:
    """Analyze roof images with a vision model (OpenAI-compatible API)."""

    DEFAULT_MODEL = "gpt-4o"

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
    ):
        self.client = client
        self.model = model
        self.timeout = timeout

    def build_user_prompt(
        self,
        location: Coordinates,
        property_record: Optional[PropertyRecord] = None,
    ) -> str:
        property_info = property_record.summary() if property_record else "No property information is available."

        return f"""Analyze this satellite image of a property at coordinates {location.lat}, {location.lng}. {property_info}

Measure the roof of the building at the center of the image only. Include attached garages and covered porches that share the roof, exclude detached structures.

Respond with exactly one JSON object with these fields:
{{
  "roofArea": <number, total roof surface area in square feet>,
  "confidence": "high" | "medium" | "low",
  "roofShape": "simple" | "complex" | "unknown",
  "roofPolygon": [{{"lat": <number>, "lng": <number>}}, ...] outlining the roof,
  "estimatedPitch": "flat" | "low" | "moderate" | "steep" | "unknown",
  "notes": "<short explanation of your reasoning>",
  "includedFeaturesInArea": ["<features counted in the area, e.g. attached garage>"]
}}"""

    async def analyze_roof(
        self,
        image: bytes,
        location: Coordinates,
        property_record: Optional[PropertyRecord] = None,
        zoom: Optional[int] = None,
    ) -> VisionRoofAnalysis:
        """
        Analyze one satellite image.

        Raises:
            VisionAnalysisError: network/HTTP failure, timeout, or a reply
                that does not parse into a valid VisionRoofAnalysis.
        """
        image_base64 = base64.b64encode(image).decode("utf-8")
        label = f"zoom {zoom}" if zoom is not None else "image"

        try:
            logger.info(f"  [VISION] Sending {label} to {self.model}...")
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": self.build_user_prompt(location, property_record)},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:image/png;base64,{image_base64}",
                                    "detail": "high",
                                },
                            },
                        ],
                    },
                ],
                max_tokens=1500,
                temperature=0.2,
                response_format={"type": "json_object"},
                timeout=self.timeout,
            )
        except (openai.APIError, httpx.HTTPError) as e:
            logger.error(f"  [VISION] {label} request failed: {e}")
            raise VisionAnalysisError(f"Vision request failed: {e}") from e

        if not response.choices:
            raise VisionAnalysisError("Vision response has no choices")
        content = response.choices[0].message.content
        logger.debug(f"  [VISION] Raw response ({label}): {(content or '')[:200]}")

        analysis = parse_vision_response(content, zoom=zoom)
        logger.info(
            f"  [VISION] {label}: {analysis.roof_area:.0f} sq ft, "
            f"confidence={analysis.confidence}, shape={analysis.roof_shape.value}"
        )
        return analysis
