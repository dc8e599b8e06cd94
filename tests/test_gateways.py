"""Tests des clients HTTP externes / External HTTP client tests."""

import httpx
import pytest

from device_association.gateways import EventPublisher, SimStateGateway, UserDirectory, VehicleProfileService


@pytest.fixture
def mock_http(monkeypatch):
    """Route chaque httpx.AsyncClient vers un handler / Route every httpx.AsyncClient to a handler."""
    real_client = httpx.AsyncClient
    requests: list[httpx.Request] = []

    def install(handler):
        def recording(request):
            requests.append(request)
            return handler(request)

        monkeypatch.setattr(
            httpx, "AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(recording), **kwargs),
        )
        return requests

    return install


# ─── Vehicle profile ───

def test_delete_url():
    service = VehicleProfileService(base_url="http://vp/", version="v2", terminate_path="/profiles")
    assert service.resolve_delete_url("HU-1") == "http://vp/v2/profiles?clientId=HU-1"


@pytest.mark.asyncio
async def test_delete_profile(mock_http):
    requests = mock_http(lambda r: httpx.Response(200, json={"data": True}))
    service = VehicleProfileService(base_url="http://vp")
    assert await service.delete("http://vp/v1/vehicleProfiles?clientId=HU-1") is True
    assert requests[0].method == "DELETE"


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(200, json={"data": False}),
    httpx.Response(500, text="boom"),
    httpx.Response(200, text="not json"),
])
async def test_delete_profile_failure_is_false(mock_http, response):
    mock_http(lambda r: response)
    assert await VehicleProfileService(base_url="http://vp").delete("http://vp/x") is False


@pytest.mark.asyncio
async def test_decode_vin(mock_http):
    requests = mock_http(lambda r: httpx.Response(
        200, json={"data": {"modelCode": "M1", "modelName": "Model 1", "type": "GREEN"}},
    ))
    decoded = await VehicleProfileService(base_url="http://vp").decode_vin("VIN-1", "CODE_VALUE")
    assert decoded == {"model_code": "M1", "model_name": "Model 1", "type": "GREEN"}
    assert requests[0].url.params["type"] == "CODE_VALUE"


@pytest.mark.asyncio
async def test_decode_vin_error_raises(mock_http):
    mock_http(lambda r: httpx.Response(503))
    with pytest.raises(httpx.HTTPStatusError):
        await VehicleProfileService(base_url="http://vp").decode_vin("VIN-1")


# ─── User directory ───

@pytest.mark.asyncio
async def test_user_attribute(mock_http):
    mock_http(lambda r: httpx.Response(200, json={"id": "u1", "attributes": {"country": "FR"}}))
    assert await UserDirectory(base_url="http://um").get_attribute("u1", "country") == "FR"


@pytest.mark.asyncio
async def test_unknown_user(mock_http):
    mock_http(lambda r: httpx.Response(404))
    assert await UserDirectory(base_url="http://um").get_attribute("u1", "country") is None


@pytest.mark.asyncio
async def test_find_user_id(mock_http):
    mock_http(lambda r: httpx.Response(200, json=[{"id": "u42"}]))
    assert await UserDirectory(base_url="http://um").find_user_id("friend@example.com") == "u42"


# ─── SIM / events ───

@pytest.mark.asyncio
async def test_sim_state_change(mock_http):
    mock_http(lambda r: httpx.Response(200, json={"transactionId": "tx-9"}))
    assert await SimStateGateway(url="http://sim/state").change_state("IMSI", "US", "ACTIVE") == "tx-9"


@pytest.mark.asyncio
async def test_sim_state_refused(mock_http):
    mock_http(lambda r: httpx.Response(409))
    assert await SimStateGateway(url="http://sim/state").change_state("IMSI", "US", "ACTIVE") is None


@pytest.mark.asyncio
async def test_publish_without_url_only_logs(mock_http):
    requests = mock_http(lambda r: httpx.Response(200))
    assert await EventPublisher(url="").publish("ASSOCIATION", {"associationId": 1}) is True
    assert requests == []


@pytest.mark.asyncio
async def test_publish_failure_is_not_raised(mock_http):
    mock_http(lambda r: httpx.Response(500))
    assert await EventPublisher(url="http://events").publish("ASSOCIATION", {}) is False


def sim_unreachable(request):
    raise httpx.ConnectError("down", request=request)


@pytest.mark.asyncio
@pytest.mark.parametrize("handler", [
    sim_unreachable,
    lambda r: httpx.Response(200, text="not json"),
    lambda r: httpx.Response(200, json=["tx-1"]),
])
async def test_sim_state_unusable_response_is_none(mock_http, handler):
    mock_http(handler)
    assert await SimStateGateway(url="http://sim/state").change_state("IMSI", "US", "ACTIVE") is None
