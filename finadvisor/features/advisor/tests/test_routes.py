"""Route tests for the advisor tools, over the SQLite event store."""

from datetime import UTC, datetime, timedelta


async def _seed(client, make_event):
    start = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
    events = [
        make_event(f"order-{day}", start + timedelta(days=day), quantity=1 + day % 2)
        for day in range(31)
    ]
    records = [e.model_dump(mode="json", by_alias=True) for e in events]
    response = await client.post("/sales-events", json={"records": records})
    assert response.json()["insertedCount"] == 31


async def test_list_tools(client):
    """Every tool is listed with a parameter schema."""
    response = await client.get("/advisor/tools")

    assert response.status_code == 200
    names = {tool["name"] for tool in response.json()["tools"]}
    assert "sales_summary" in names
    assert len(names) == 7


async def test_sales_summary_over_store(client, make_event):
    """The summary reads the ingested events."""
    await _seed(client, make_event)

    response = await client.post(
        "/advisor/tools/sales_summary",
        json={"timeRange": "week", "asOf": "2024-03-31"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["tool"] == "sales_summary"
    assert data["result"]["totalOrders"] == 7
    assert "httpStatus" not in data


async def test_fetch_timeseries_over_store(client, make_event):
    """Monthly buckets sum the daily events."""
    await _seed(client, make_event)

    response = await client.post(
        "/advisor/tools/fetch_timeseries",
        json={"timeRange": "monthly", "startDate": "2024-03-01", "endDate": "2024-03-31"},
    )

    points = response.json()["result"]["points"]
    assert len(points) == 1
    assert points[0]["orderCount"] == 31
    assert points[0]["units"] == 46


async def test_missing_params_return_400_envelope(client):
    """Validation failures keep the envelope shape with HTTP 400."""
    response = await client.post("/advisor/tools/top_products", json={"timeRange": "week"})

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["error"]["code"] == "VALIDATION_ERROR"
    assert "sortBy" in [err["field"] for err in data["error"]["details"]["errors"]]


async def test_unknown_tool_returns_400_envelope(client):
    """Unknown tools are configuration errors."""
    response = await client.post("/advisor/tools/nope", json={})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CONFIGURATION_ERROR"


async def test_tool_without_body(client):
    """A call without a body is validated like an empty parameter set."""
    response = await client.post("/advisor/tools/sales_summary")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_insufficient_history_returns_422(client):
    """Simulating a product without sales is a 422 envelope."""
    response = await client.post(
        "/advisor/tools/simulate_discount",
        json={"productId": "ghost", "discountPercent": 10},
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INSUFFICIENT_HISTORY"
