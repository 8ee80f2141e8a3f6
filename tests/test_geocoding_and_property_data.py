"""
Tests for the Google geocoding client and the Rentcast property data client.
"""

import httpx
import pytest

from roofai.core.exceptions import GeocodeError
from roofai.core.geocoding_service import GeocodingService
from roofai.core.property_classifier import PropertyCategory
from roofai.core.property_data_service import PropertyDataService, parse_rentcast_property


GEOCODE_OK = {
    "status": "OK",
    "results": [{
        "formatted_address": "1437 Bannock St, Denver, CO 80202, USA",
        "place_id": "ChIJabc",
        "geometry": {"location": {"lat": 39.7392, "lng": -104.9903}},
        "address_components": [
            {"long_name": "Denver", "short_name": "Denver", "types": ["locality", "political"]},
            {"long_name": "Colorado", "short_name": "CO", "types": ["administrative_area_level_1", "political"]},
            {"long_name": "80202", "short_name": "80202", "types": ["postal_code"]},
        ],
    }],
}

RENTCAST_RECORD = {
    "formattedAddress": "1437 Bannock St, Denver, CO 80202",
    "propertyType": "Single Family",
    "squareFootage": 2400,
    "yearBuilt": 1995,
    "features": {"floorCount": 2, "roofType": "Asphalt"},
}


def geocoder(handler, api_key="test-key") -> GeocodingService:
    return GeocodingService(api_key, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def rentcast(handler, api_key="test-key") -> PropertyDataService:
    return PropertyDataService(api_key, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestGeocodingService:

    @pytest.mark.asyncio
    async def test_geocode_success(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json=GEOCODE_OK)

        result = await geocoder(handler).geocode("1437 Bannock St, Denver")

        assert seen["address"] == "1437 Bannock St, Denver"
        assert result.latitude == 39.7392
        assert result.longitude == -104.9903
        assert result.city == "Denver"
        assert result.state == "CO"
        assert result.zip_code == "80202"
        assert result.place_id == "ChIJabc"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"status": "ZERO_RESULTS", "results": []},
        {"status": "REQUEST_DENIED"},
        {"status": "OK", "results": []},
        {"status": "OK", "results": [{"geometry": {}}]},
    ])
    async def test_geocode_failures(self, payload):
        service = geocoder(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(GeocodeError):
            await service.geocode("nowhere in particular")

    @pytest.mark.asyncio
    async def test_http_error(self):
        service = geocoder(lambda request: httpx.Response(500))
        with pytest.raises(GeocodeError):
            await service.geocode("1437 Bannock St")

    @pytest.mark.asyncio
    async def test_short_address_rejected_without_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(GeocodeError):
            await geocoder(handler).geocode(" a ")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        service = geocoder(lambda request: httpx.Response(200, json=GEOCODE_OK), api_key=None)
        with pytest.raises(GeocodeError):
            await service.geocode("1437 Bannock St")


class TestParseRentcast:

    def test_full_record(self):
        record = parse_rentcast_property(RENTCAST_RECORD)
        assert record.property_type == PropertyCategory.SINGLE_FAMILY
        assert record.building_size_sqft == 2400
        assert record.stories == 2
        assert record.footprint_sqft == 1200
        assert record.year_built == 1995
        assert record.roof_type == "Asphalt"

    def test_sparse_record(self):
        record = parse_rentcast_property({"propertyType": "Land", "squareFootage": 0})
        assert record.property_type == PropertyCategory.UNKNOWN
        assert record.building_size_sqft is None
        assert record.stories == 1
        assert record.footprint_sqft is None


class TestPropertyDataService:

    @pytest.mark.asyncio
    async def test_lookup_list_payload_and_memo(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=[RENTCAST_RECORD])

        service = rentcast(handler)
        record = await service.lookup("1437 Bannock St, Denver, CO 80202")
        again = await service.lookup("  1437 bannock st, denver, co 80202 ")

        assert record.building_size_sqft == 2400
        assert again is record
        assert len(calls) == 1
        assert calls[0].headers["X-Api-Key"] == "test-key"

    @pytest.mark.asyncio
    async def test_memo_is_bounded(self):
        calls = []

        def handler(request):
            calls.append(request.url.params["address"])
            return httpx.Response(200, json=RENTCAST_RECORD)

        service = PropertyDataService("test-key", memo_size=2, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        for address in ("1 A St", "2 B St", "1 A St", "3 C St", "2 B St"):
            await service.lookup(address)

        # "2 B St" was least recently used when "3 C St" arrived
        assert calls == ["1 A St", "2 B St", "3 C St", "2 B St"]
        assert len(service._memo) == 2

    @pytest.mark.asyncio
    async def test_not_found(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        service = rentcast(handler)
        assert await service.lookup("1 Nowhere Rd") is None
        assert await service.lookup("1 Nowhere Rd") is None
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_not_memoized(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        service = rentcast(handler)
        assert await service.lookup("1437 Bannock St") is None
        assert await service.lookup("1437 Bannock St") is None
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        assert await rentcast(handler).lookup("1437 Bannock St") is None

    @pytest.mark.asyncio
    async def test_empty_payload(self):
        assert await rentcast(lambda request: httpx.Response(200, json=[])).lookup("1437 Bannock St") is None

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        def handler(request):
            raise AssertionError("no request expected")

        service = rentcast(handler, api_key=None)
        assert service.is_configured is False
        assert await service.lookup("1437 Bannock St") is None
