"""
Rentcast Property Data Service

Looks up public property records (building size, stories, type) for an
address. Missing data is normal: callers receive None and estimation
degrades to lower-confidence paths.

API Documentation: https://developers.rentcast.io/reference/property-records
"""

import logging
from collections import OrderedDict
import httpx
from typing import Any, Dict, Optional

from pydantic import ValidationError

from roofai.schemas.roof import PropertyRecord

logger = logging.getLogger(__name__)

DEFAULT_MEMO_SIZE = 1024


def _positive_or_none(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def parse_rentcast_property(data: Dict[str, Any]) -> PropertyRecord:
    """Map one Rentcast property object onto a PropertyRecord."""
    features = data.get("features") or {}
    stories = features.get("floorCount") or data.get("stories") or 1

    return PropertyRecord(
        property_type=data.get("propertyType"),
        building_size_sqft=_positive_or_none(data.get("squareFootage")),
        stories=max(1, int(stories)),
        year_built=data.get("yearBuilt"),
        roof_type=features.get("roofType") or data.get("roofType"),
    )


class PropertyDataService:
    """Property record lookups with an in-process memo per address."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.rentcast.io/v1/properties",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        memo_size: int = DEFAULT_MEMO_SIZE,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._client = client
        self.memo_size = memo_size
        self._memo: "OrderedDict[str, Optional[PropertyRecord]]" = OrderedDict()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def _remember(self, key: str, record: Optional[PropertyRecord]) -> None:
        """Memoize a lookup, evicting the least recently used address when full."""
        self._memo[key] = record
        self._memo.move_to_end(key)
        while len(self._memo) > self.memo_size:
            self._memo.popitem(last=False)

    async def lookup(self, address: str) -> Optional[PropertyRecord]:
        """
        Get the property record for an address.

        Returns:
            PropertyRecord, or None when not configured, not found, or the
            provider failed.
        """
        if not self.is_configured:
            logger.warning("   ⚠️ Rentcast not configured (RENTCAST_API_KEY not set)")
            return None
        if not address or not address.strip():
            return None

        memo_key = address.strip().lower()
        if memo_key in self._memo:
            logger.info(f"   🏠 Rentcast: using memoized record for {address}")
            self._memo.move_to_end(memo_key)
            return self._memo[memo_key]

        client = await self._get_client()
        try:
            response = await client.get(
                self.base_url,
                params={"address": address},
                headers={"X-Api-Key": self.api_key, "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"   Rentcast request failed: {e}")
            return None

        if response.status_code == 404:
            self._remember(memo_key, None)
            return None
        if response.status_code != 200:
            logger.error(f"   Rentcast error: {response.status_code} - {response.text[:200]}")
            return None

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"   Rentcast returned invalid JSON: {e}")
            return None

        data = payload[0] if isinstance(payload, list) and payload else payload
        if not isinstance(data, dict) or not data:
            self._remember(memo_key, None)
            return None

        try:
            record = parse_rentcast_property(data)
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(f"   Rentcast record could not be parsed: {e}")
            return None

        logger.info(
            f"   🏠 Rentcast: {record.property_type.value}, "
            f"{record.building_size_sqft or 'unknown'} sq ft, {record.stories} stories"
        )
        self._remember(memo_key, record)
        return record
