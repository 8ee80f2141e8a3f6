import logging

from fastapi import APIRouter, Depends, HTTPException

from roofai.core.dependencies import (
    get_geocoding_service,
    get_property_data_service,
    get_roof_pipeline,
)
from roofai.core.exceptions import GeocodeError
from roofai.core.geocoding_service import GeocodingService
from roofai.core.property_data_service import PropertyDataService
from roofai.core.roof_analysis_pipeline import RoofAnalysisPipeline
from roofai.schemas.roof_analysis import (
    AddressRoofAnalysisRequest,
    AddressRoofAnalysisResponse,
    RoofAnalysisRequest,
    RoofAnalysisResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=RoofAnalysisResponse)
async def analyze_roof(
    request: RoofAnalysisRequest,
    pipeline: RoofAnalysisPipeline = Depends(get_roof_pipeline),
):
    """Estimate roof area for coordinates, optionally with property data."""
    logger.info(
        f"Roof analysis request: ({request.lat}, {request.lng}), "
        f"property data: {request.property_data is not None}"
    )
    estimate = await pipeline.estimate_roof_area(
        request.lat,
        request.lng,
        property_record=request.property_data,
        manual_area_sqft=request.manual_area_sqft,
    )
    return RoofAnalysisResponse(data=estimate)


@router.post("/address", response_model=AddressRoofAnalysisResponse)
async def analyze_roof_by_address(
    request: AddressRoofAnalysisRequest,
    pipeline: RoofAnalysisPipeline = Depends(get_roof_pipeline),
    geocoding_service: GeocodingService = Depends(get_geocoding_service),
    property_data_service: PropertyDataService = Depends(get_property_data_service),
):
    """Geocode an address, look up its property record, then estimate the roof."""
    try:
        location = await geocoding_service.geocode(request.address)
    except GeocodeError as e:
        raise HTTPException(status_code=404, detail=f"Could not geocode address: {e}")

    record = await property_data_service.lookup(location.formatted_address)

    estimate = await pipeline.estimate_roof_area(
        location.latitude,
        location.longitude,
        property_record=record,
        manual_area_sqft=request.manual_area_sqft,
    )
    return AddressRoofAnalysisResponse(data=estimate, location=location, property=record)
