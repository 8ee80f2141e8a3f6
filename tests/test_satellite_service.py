"""
Tests for satellite image fetching and multi-zoom sampling.
"""

import httpx
import pytest

from roofai.core.exceptions import ImageFetchError
from roofai.core.satellite_service import ImageSampler, SatelliteService


def service_with(handler, api_key="test-key") -> SatelliteService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SatelliteService(api_key, client=client)


class TestSatelliteService:

    def test_image_params(self):
        service = SatelliteService("test-key", size="400x400", scale=1)
        params = service.get_satellite_image_params(39.7392, -104.9903, 21)
        assert params["center"] == "39.7392,-104.9903"
        assert params["zoom"] == 21
        assert params["size"] == "400x400"
        assert params["scale"] == 1
        assert params["maptype"] == "satellite"
        assert params["key"] == "test-key"

    @pytest.mark.asyncio
    async def test_fetch_success(self, png_bytes):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, content=png_bytes)

        image = await service_with(handler).fetch_image(39.7392, -104.9903, 20)
        assert image == png_bytes
        assert seen["zoom"] == "20"
        assert seen["maptype"] == "satellite"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,transient", [(500, True), (503, True), (429, True), (403, False), (400, False)])
    async def test_http_errors(self, status, transient):
        service = service_with(lambda request: httpx.Response(status, text="error"))
        with pytest.raises(ImageFetchError) as exc_info:
            await service.fetch_image(39.7392, -104.9903, 20)
        assert exc_info.value.transient is transient

    @pytest.mark.asyncio
    async def test_non_image_body_rejected(self):
        service = service_with(lambda request: httpx.Response(200, text="<html>quota exceeded</html>"))
        with pytest.raises(ImageFetchError) as exc_info:
            await service.fetch_image(39.7392, -104.9903, 20)
        assert exc_info.value.transient is False

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ImageFetchError) as exc_info:
            await service_with(handler).fetch_image(39.7392, -104.9903, 20)
        assert exc_info.value.transient is True

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ImageFetchError) as exc_info:
            await service_with(handler).fetch_image(39.7392, -104.9903, 20)
        assert exc_info.value.transient is True

    @pytest.mark.asyncio
    async def test_redirect_loop_is_permanent(self):
        def handler(request):
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)

        with pytest.raises(ImageFetchError) as exc_info:
            await service_with(handler).fetch_image(39.7392, -104.9903, 20)
        assert exc_info.value.transient is False

    @pytest.mark.asyncio
    async def test_sampler_isolates_redirect_failure(self, location, png_bytes):
        def handler(request):
            if request.url.params["zoom"] == "21":
                raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)
            return httpx.Response(200, content=png_bytes)

        samples = await ImageSampler(service_with(handler)).sample(location, [21, 20])
        assert [s.is_valid for s in samples] == [False, True]

    @pytest.mark.asyncio
    async def test_missing_key(self, png_bytes):
        service = service_with(lambda request: httpx.Response(200, content=png_bytes), api_key=None)
        with pytest.raises(ImageFetchError):
            await service.fetch_image(39.7392, -104.9903, 20)


class TestImageSampler:

    @pytest.mark.asyncio
    async def test_samples_keep_zoom_order_and_isolate_failures(self, location, png_bytes):
        def handler(request):
            if request.url.params["zoom"] == "20":
                return httpx.Response(502)
            return httpx.Response(200, content=png_bytes)

        sampler = ImageSampler(service_with(handler))
        samples = await sampler.sample(location, [21, 20, 19])

        assert [s.zoom for s in samples] == [21, 20, 19]
        assert [s.is_valid for s in samples] == [True, False, True]
        assert samples[1].transient is True
        assert "502" in samples[1].error

    @pytest.mark.asyncio
    async def test_all_failures(self, location):
        sampler = ImageSampler(service_with(lambda request: httpx.Response(403)))
        samples = await sampler.sample(location, [21, 20])
        assert not any(s.is_valid for s in samples)
        assert not any(s.transient for s in samples)
