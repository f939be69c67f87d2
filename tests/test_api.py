import json

import httpx
import pytest
import pytest_asyncio

from parts_scanner.api import LocationUpdate, PartsApiClient, StockAdjustment
from parts_scanner.config import ApiConfig

PART_PAYLOAD = {
    "id": 7,
    "part_number": "PART-2025-007",
    "part_name": "Spark Plug",
    "quantity_on_hand": 12,
    "quantity_reserved": 1,
    "minimum_stock_level": 4,
    "warehouse_location": "Main",
    "aisle": "B",
    "rack": "R3",
    "bin": "B2",
    "unit_cost": "85.00",
    "selling_price": "150.00",
    "status": "active",
}


@pytest_asyncio.fixture
async def make_client():
    clients = []

    def factory(handler, **overrides):
        config = ApiConfig(base_url="http://inventory.test", csrf_token="token-123", **overrides)
        client = PartsApiClient(config, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.aclose()


@pytest.mark.asyncio
async def test_lookup_success(make_client):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["headers"] = request.headers
        return httpx.Response(200, json={"success": True, "part": PART_PAYLOAD})

    result = await make_client(handler).lookup("PART-2025-007")

    assert result.ok
    assert result.part.id == 7
    assert result.part.location.display() == "Main / B / R3 / B2"
    assert seen["method"] == "POST"
    assert seen["path"] == "/inventory/parts-inventory/scan"
    assert seen["body"] == {"code": "PART-2025-007"}
    assert seen["headers"]["x-csrf-token"] == "token-123"
    assert seen["headers"]["accept"] == "application/json"
    assert seen["headers"]["x-requested-with"] == "XMLHttpRequest"


@pytest.mark.asyncio
async def test_lookup_without_csrf_token_omits_header():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        return httpx.Response(200, json={"success": True, "part": PART_PAYLOAD})

    config = ApiConfig(base_url="http://inventory.test")
    client = PartsApiClient(config, transport=httpx.MockTransport(handler))
    try:
        await client.lookup("X")
    finally:
        await client.aclose()
    assert "x-csrf-token" not in seen["headers"]


@pytest.mark.asyncio
async def test_lookup_not_found_uses_server_message(make_client):
    def handler(request):
        return httpx.Response(404, json={"success": False, "message": "No part matches code ZZZ"})

    result = await make_client(handler).lookup("ZZZ")

    assert not result.ok
    assert result.part is None
    assert result.message == "No part matches code ZZZ"
    assert not result.transport_error


@pytest.mark.asyncio
async def test_lookup_rejection_without_message_uses_default(make_client):
    def handler(request):
        return httpx.Response(200, json={"success": False})

    result = await make_client(handler).lookup("ZZZ")
    assert result.message == "Part not found"
    assert not result.transport_error


@pytest.mark.asyncio
async def test_server_error_is_transport_failure(make_client):
    def handler(request):
        return httpx.Response(500, json={"success": False, "message": "Server Error"})

    result = await make_client(handler).lookup("A")
    assert not result.ok
    assert result.transport_error


@pytest.mark.asyncio
async def test_non_json_response_is_transport_failure(make_client):
    def handler(request):
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    result = await make_client(handler).lookup("A")
    assert not result.ok
    assert result.transport_error
    assert result.message == "Error scanning part. Please try again."


@pytest.mark.asyncio
async def test_network_error_is_transport_failure(make_client):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = await make_client(handler).lookup("A")
    assert not result.ok
    assert result.transport_error
    assert result.message == "Error scanning part. Please try again."


@pytest.mark.asyncio
async def test_success_without_part_is_transport_failure(make_client):
    def handler(request):
        return httpx.Response(200, json={"success": True})

    result = await make_client(handler).lookup("A")
    assert not result.ok
    assert result.transport_error


@pytest.mark.asyncio
async def test_stock_adjustment_request(make_client):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        updated = dict(PART_PAYLOAD, quantity_on_hand=9)
        return httpx.Response(200, json={"success": True, "message": "Stock adjusted", "part": updated})

    result = await make_client(handler).quick_update(7, StockAdjustment(-3))

    assert result.ok
    assert result.part.quantity_on_hand == 9
    assert seen["path"] == "/inventory/parts-inventory/7/quick-update"
    assert seen["body"] == {"action": "adjust_stock", "quantity_change": -3}


@pytest.mark.asyncio
async def test_stock_adjustment_rejected(make_client):
    def handler(request):
        return httpx.Response(422, json={"success": False, "message": "Insufficient stock. Current quantity: 12"})

    result = await make_client(handler).quick_update(7, StockAdjustment(-100))
    assert not result.ok
    assert result.message == "Insufficient stock. Current quantity: 12"
    assert not result.transport_error


@pytest.mark.asyncio
async def test_location_update_request(make_client):
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        updated = dict(PART_PAYLOAD, warehouse_location="Annex", aisle="", rack="R9", bin="")
        return httpx.Response(200, json={"success": True, "part": updated})

    change = LocationUpdate(warehouse_location="Annex", aisle="", rack="R9", bin="")
    result = await make_client(handler).quick_update(7, change)

    assert seen["body"] == {
        "action": "update_location",
        "warehouse_location": "Annex",
        "aisle": "",
        "rack": "R9",
        "bin": "",
    }
    assert result.part.location.display() == "Annex / R9"


@pytest.mark.asyncio
async def test_location_update_network_error_message(make_client):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    result = await make_client(handler).quick_update(7, LocationUpdate())
    assert result.transport_error
    assert result.message == "Error updating location. Please try again."
