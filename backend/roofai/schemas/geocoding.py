from pydantic import BaseModel, Field
from typing import Optional


class GeocodeRequest(BaseModel):
    address: str = Field(min_length=1)


class GeocodeResult(BaseModel):
    latitude: float
    longitude: float
    formatted_address: str
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    place_id: Optional[str] = None
