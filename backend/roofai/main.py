import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from roofai.core.config import settings
from roofai.core.dependencies import build_services
from roofai.api.v1.router import api_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Raises ConfigurationError on missing credentials, aborting startup
    services = build_services(settings)
    app.state.services = services
    try:
        yield
    finally:
        await services.aclose()


app = FastAPI(
    title="RoofAI API",
    description="Roof area estimation from satellite imagery and property records",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "detail": str(exc) if settings.ENVIRONMENT == "development" else "Internal server error",
        },
        headers={"Access-Control-Allow-Origin": "*"},
    )


@app.get("/")
def root():
    return {"message": "RoofAI API", "version": "1.0.0"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}


app.include_router(api_router, prefix=settings.API_V1_PREFIX)
