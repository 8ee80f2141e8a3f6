from fastapi import APIRouter
from roofai.api.v1.endpoints import geocoding, roof_analysis

api_router = APIRouter()

api_router.include_router(roof_analysis.router, prefix="/roof-analysis", tags=["roof-analysis"])
api_router.include_router(geocoding.router, prefix="/geocoding", tags=["geocoding"])
