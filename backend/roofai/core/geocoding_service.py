import logging
import httpx
from typing import Optional

from roofai.core.exceptions import GeocodeError
from roofai.schemas.geocoding import GeocodeResult

logger = logging.getLogger(__name__)


class GeocodingService:
    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = "https://maps.googleapis.com/maps/api/geocode/json"
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def geocode(self, address: str) -> GeocodeResult:
        """
        Resolve a free-text address.

        Raises:
            GeocodeError: blank address, no match, or provider failure.
        """
        if not self.api_key:
            raise GeocodeError("GOOGLE_MAPS_KEY not configured")

        if not address or len(address.strip()) < 3:
            raise GeocodeError("Address is too short to geocode")

        client = await self._get_client()
        try:
            response = await client.get(
                self.base_url,
                params={"address": address, "key": self.api_key},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error geocoding address: {e}")
            raise GeocodeError(f"Geocoding request failed: {e}") from e

        status = data.get("status")
        if status != "OK":
            logger.error(f"Geocoding error: {status}")
            raise GeocodeError(f"Geocoding error: {status}")

        results = data.get("results", [])
        if not results:
            raise GeocodeError("No geocoding results")

        result = results[0]
        location = result.get("geometry", {}).get("location", {})
        if "lat" not in location or "lng" not in location:
            raise GeocodeError("Geocoding result has no location")

        city = None
        state = None
        zip_code = None
        for component in result.get("address_components", []):
            types = component.get("types", [])
            if "locality" in types:
                city = component.get("long_name")
            elif "administrative_area_level_1" in types:
                state = component.get("short_name")
            elif "postal_code" in types:
                zip_code = component.get("long_name")

        return GeocodeResult(
            latitude=float(location["lat"]),
            longitude=float(location["lng"]),
            formatted_address=result.get("formatted_address", address),
            city=city,
            state=state,
            zip_code=zip_code,
            place_id=result.get("place_id"),
        )
