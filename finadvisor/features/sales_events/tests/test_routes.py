"""Route tests for the live ingest hook and range reads."""

from datetime import timedelta


def _payload(*events):
    return {"records": [e.model_dump(mode="json", by_alias=True) for e in events]}


async def test_ingest_then_list(client, make_event, jan_15):
    """Upserted events are returned by the range query in timestamp order."""
    later = make_event("order-2", jan_15 + timedelta(hours=2))
    earlier = make_event("order-1", jan_15)

    response = await client.post("/sales-events", json=_payload(later, earlier))

    assert response.status_code == 200
    assert response.json()["insertedCount"] == 2

    listed = await client.get(
        "/sales-events", params={"startDate": "2024-01-15", "endDate": "2024-01-15"}
    )
    assert listed.status_code == 200
    assert [e["orderId"] for e in listed.json()["events"]] == ["order-1", "order-2"]


async def test_replay_and_stale_events(client, make_event, jan_15):
    """A replay is a no-op update and an older version is ignored as stale."""
    event = make_event("order-1", jan_15)
    await client.post("/sales-events", json=_payload(event))

    replay = await client.post("/sales-events", json=_payload(event))
    stale = await client.post(
        "/sales-events",
        json=_payload(make_event("order-1", jan_15 - timedelta(days=1), quantity=5)),
    )

    assert replay.json()["insertedCount"] == 0
    assert stale.json()["staleCount"] == 1


async def test_partial_success(client, make_event, jan_15):
    """Events failing integrity checks are rejected individually."""
    good = make_event("order-1", jan_15)
    bad = make_event("order-2", jan_15, total_amount="1.00", net_amount="1.00")

    response = await client.post("/sales-events", json=_payload(good, bad))

    data = response.json()
    assert data["insertedCount"] == 1
    assert data["rejectedCount"] == 1
    assert data["errors"][0]["orderId"] == "order-2"
    assert data["errors"][0]["rowIndex"] == 1


async def test_list_rejects_inverted_range(client):
    """startDate after endDate is a 400 problem response."""
    response = await client.get(
        "/sales-events", params={"startDate": "2024-02-01", "endDate": "2024-01-01"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


async def test_empty_batch_is_rejected(client):
    """A batch needs at least one record."""
    response = await client.post("/sales-events", json={"records": []})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
