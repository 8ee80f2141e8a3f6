from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from roofai.schemas.geocoding import GeocodeResult
from roofai.schemas.roof import PropertyRecord, RoofEstimate


class RoofAnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    property_data: Optional[PropertyRecord] = Field(None, alias="propertyData")
    manual_area_sqft: Optional[float] = Field(None, gt=0, alias="manualAreaSqFt")


class AddressRoofAnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: str = Field(min_length=3)
    manual_area_sqft: Optional[float] = Field(None, gt=0, alias="manualAreaSqFt")


class RoofAnalysisResponse(BaseModel):
    success: bool = True
    data: RoofEstimate


class AddressRoofAnalysisResponse(BaseModel):
    success: bool = True
    data: RoofEstimate
    location: GeocodeResult
    property: Optional[PropertyRecord] = None
