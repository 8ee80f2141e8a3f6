from fastapi import APIRouter, Depends, HTTPException

from roofai.core.dependencies import get_geocoding_service
from roofai.core.exceptions import GeocodeError
from roofai.core.geocoding_service import GeocodingService
from roofai.schemas.geocoding import GeocodeRequest, GeocodeResult

router = APIRouter()


@router.post("", response_model=GeocodeResult)
async def geocode(
    request: GeocodeRequest,
    geocoding_service: GeocodingService = Depends(get_geocoding_service),
):
    """Geocode an address to coordinates and address components."""
    try:
        return await geocoding_service.geocode(request.address)
    except GeocodeError as e:
        raise HTTPException(
            status_code=404,
            detail=f"Could not geocode address: {e}"
        )
