import asyncio
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Sequence

import httpx
from PIL import Image, UnidentifiedImageError

from roofai.core.exceptions import ImageFetchError
from roofai.schemas.roof import Coordinates

logger = logging.getLogger(__name__)


class SatelliteService:
    """Google Static Maps satellite imagery."""

    BASE_URL = "https://maps.googleapis.com/maps/api/staticmap"
    DEFAULT_SIZE = "640x640"
    DEFAULT_SCALE = 2

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 20.0,
        size: str = DEFAULT_SIZE,
        scale: int = DEFAULT_SCALE,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.size = size
        self.scale = scale
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def get_satellite_image_params(
        self,
        latitude: float,
        longitude: float,
        zoom: int,
        size: Optional[str] = None,
        map_type: str = "satellite",
    ) -> dict:
        """Query parameters for a Static Maps request."""
        return {
            "center": f"{latitude},{longitude}",
            "zoom": zoom,
            "size": size or self.size,
            "scale": self.scale,
            "maptype": map_type,
            "format": "png",
            "key": self.api_key,
        }

    async def fetch_image(
        self,
        latitude: float,
        longitude: float,
        zoom: int,
        size: Optional[str] = None,
        map_type: str = "satellite",
    ) -> bytes:
        """
        Download a satellite image as bytes.

        Raises:
            ImageFetchError: network/HTTP failure (transient for timeouts,
                connection errors, 429 and 5xx) or undecodable image data.
        """
        if not self.api_key:
            raise ImageFetchError("GOOGLE_MAPS_KEY not configured")

        params = self.get_satellite_image_params(latitude, longitude, zoom, size, map_type)
        client = await self._get_client()

        try:
            response = await client.get(self.BASE_URL, params=params, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise ImageFetchError(f"Timed out fetching zoom {zoom} image: {e}", transient=True) from e
        except httpx.TransportError as e:
            raise ImageFetchError(f"Network error fetching zoom {zoom} image: {e}", transient=True) from e
        except httpx.HTTPError as e:
            raise ImageFetchError(f"HTTP error fetching zoom {zoom} image: {e}") from e

        if response.status_code != 200:
            transient = response.status_code == 429 or response.status_code >= 500
            raise ImageFetchError(
                f"Static Maps returned {response.status_code} for zoom {zoom}",
                transient=transient,
            )

        content = response.content
        try:
            with Image.open(BytesIO(content)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ImageFetchError(f"Undecodable image at zoom {zoom}: {e}") from e

        return content


@dataclass
class ZoomSample:
    """Outcome of fetching one zoom level."""
    zoom: int
    image: Optional[bytes] = None
    error: Optional[str] = None
    transient: bool = False

    @property
    def is_valid(self) -> bool:
        return self.image is not None


class ImageSampler:
    """
    Fetch satellite imagery for a location at several zoom levels at once.

    Each zoom level is isolated: a failure produces a ZoomSample carrying the
    error and never aborts the other fetches. No retries at this layer.
    """

    def __init__(self, satellite_service: SatelliteService):
        self.satellite_service = satellite_service

    async def fetch_zoom(self, location: Coordinates, zoom: int) -> ZoomSample:
        try:
            image = await self.satellite_service.fetch_image(location.lat, location.lng, zoom)
        except ImageFetchError as e:
            logger.warning(f"  [SAMPLER] Zoom {zoom} failed: {e}")
            return ZoomSample(zoom=zoom, error=str(e), transient=e.transient)

        logger.info(f"  [SAMPLER] Zoom {zoom}: {len(image):,} bytes")
        return ZoomSample(zoom=zoom, image=image)

    async def sample(self, location: Coordinates, zoom_levels: Sequence[int]) -> List[ZoomSample]:
        tasks = [self.fetch_zoom(location, zoom) for zoom in zoom_levels]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        samples: List[ZoomSample] = []
        for zoom, result in zip(zoom_levels, results):
            if isinstance(result, Exception):
                logger.error(f"  [SAMPLER] Zoom {zoom} crashed: {result}")
                samples.append(ZoomSample(zoom=zoom, error=str(result)))
            else:
                samples.append(result)

        valid = sum(1 for s in samples if s.is_valid)
        logger.info(f"  [SAMPLER] {valid}/{len(samples)} zoom levels fetched")
        return samples
