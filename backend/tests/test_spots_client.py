import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import httpx
import pytest

from models.types import ErrorClass
from services.spots_client import SpotFetchError, SpotNotFoundError, SpotsClient, classify_status

BASE_URL = "http://spots.test/api/v1/spots"

HEL_PAYLOAD = {
    "name": "Hel",
    "country": "Poland",
    "wgId": 48009,
    "forecast": [{"date": "Mon 14", "wind": 14, "gusts": 20, "direction": "NW", "temp": 18}],
    "forecastHourly": [],
    "currentConditions": {"date": "10:40", "wind": 12.5, "gusts": 17, "direction": "W", "temp": 19},
    "lastUpdated": "2026-06-01T10:00:00Z",
    "spotInfoPL": {"type": "Lagoon"},
}


def _client_with(handler) -> SpotsClient:
    client = SpotsClient(base_url=BASE_URL + "/", timeout=5)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


def test_classify_status():
    assert classify_status(200) is None
    assert classify_status(404) == ErrorClass.NOT_FOUND
    assert classify_status(500) == ErrorClass.TRANSIENT
    assert classify_status(429) == ErrorClass.TRANSIENT


def test_spot_url_includes_model_only_when_given():
    client = SpotsClient(base_url=BASE_URL)
    assert client.spot_url("hel") == f"{BASE_URL}/hel"
    assert client.spot_url("hel", "ifs") == f"{BASE_URL}/hel/ifs"


@pytest.mark.asyncio
async def test_fetch_spot_parses_payload():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=HEL_PAYLOAD)

    client = _client_with(handler)
    spot = await client.fetch_spot("hel", "gfs")
    await client.close()

    assert str(requests[0].url) == f"{BASE_URL}/hel/gfs"
    assert spot.name == "Hel"
    assert spot.wg_id == 48009
    assert spot.forecast[0].gusts == 20
    assert spot.live_conditions is not None
    assert spot.spot_info_pl == {"type": "Lagoon"}
    assert spot.to_api_dict()["lastUpdated"] == "2026-06-01T10:00:00Z"


@pytest.mark.asyncio
async def test_fetch_spot_404_raises_not_found():
    client = _client_with(lambda request: httpx.Response(404, json={"error": "Spot not found"}))

    with pytest.raises(SpotNotFoundError) as exc_info:
        await client.fetch_spot("nowhere")
    assert exc_info.value.is_not_found
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_fetch_spot_server_error_is_transient():
    client = _client_with(lambda request: httpx.Response(503, text="unavailable"))

    with pytest.raises(SpotFetchError) as exc_info:
        await client.fetch_spot("hel")
    assert exc_info.value.error_class == ErrorClass.TRANSIENT
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_network_failure_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client_with(handler)
    with pytest.raises(SpotFetchError) as exc_info:
        await client.fetch_spot("hel")
    assert exc_info.value.error_class == ErrorClass.TRANSIENT


@pytest.mark.asyncio
async def test_malformed_json_is_transient():
    client = _client_with(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(SpotFetchError) as exc_info:
        await client.fetch_spot("hel")
    assert exc_info.value.error_class == ErrorClass.TRANSIENT


@pytest.mark.asyncio
async def test_spot_payload_missing_name_is_transient():
    client = _client_with(lambda request: httpx.Response(200, json={"country": "Poland"}))

    with pytest.raises(SpotFetchError) as exc_info:
        await client.fetch_spot("hel")
    assert exc_info.value.error_class == ErrorClass.TRANSIENT


@pytest.mark.asyncio
async def test_fetch_all_spots_bypasses_caches():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=[HEL_PAYLOAD, {**HEL_PAYLOAD, "name": "Jastarnia"}])

    client = _client_with(handler)
    spots = await client.fetch_all_spots()

    assert [s.name for s in spots] == ["Hel", "Jastarnia"]
    assert str(requests[0].url) == BASE_URL
    assert requests[0].headers["cache-control"] == "no-store"


@pytest.mark.asyncio
async def test_fetch_all_spots_rejects_non_array():
    client = _client_with(lambda request: httpx.Response(200, json={"spots": []}))

    with pytest.raises(SpotFetchError) as exc_info:
        await client.fetch_all_spots()
    assert exc_info.value.error_class == ErrorClass.TRANSIENT
    assert "Expected array of spots" in str(exc_info.value)
