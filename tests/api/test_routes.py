import pytest
import httpx
from datetime import datetime, timezone
from typing import Any, AsyncGenerator

from weather_web.exceptions import StorageError
from weather_web.api.server import init_api
from weather_web.db.session import DatabaseSessionManager

DB_URI = "sqlite+aiosqlite:///:memory:"

# Start of an hour
T = 1_700_000_000 // 3600 * 3600


@pytest.fixture
async def db() -> AsyncGenerator[DatabaseSessionManager, None]:
    manager = DatabaseSessionManager()
    await manager.init(DB_URI)
    async with manager.connect() as conn:
        await manager.create_all(conn)
    yield manager
    await manager.close()


@pytest.fixture
async def client(
    db: DatabaseSessionManager,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = init_api(db=db)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://test"
    ) as client:
        yield client


async def post_reading(client: httpx.AsyncClient, **payload: Any) -> Any:
    response = await client.post("/api/weather", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


async def event_types(client: httpx.AsyncClient) -> list[str]:
    response = await client.get("/api/weather/logs")
    return [e["event_type"] for e in response.json()["logs"]]


@pytest.mark.asyncio
async def test_health(client: httpx.AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_api_index(client: httpx.AsyncClient) -> None:
    response = await client.get("/api")
    assert response.status_code == 200
    body = response.json()
    assert "version" in body
    assert "POST /api/weather" in body["endpoints"]["weather_data"]


@pytest.mark.asyncio
async def test_post_reading(client: httpx.AsyncClient) -> None:
    body = await post_reading(client, id=1, temperature=21.5, unix=T)

    assert body["status"] == "success"
    assert body["sender"] == "1"
    assert isinstance(body["id"], int)
    assert "alerts" not in body

    response = await client.get("/api/weather/current/1")
    assert response.status_code == 200
    current = response.json()
    assert current["temperature"] == 21.5
    assert current["unix_timestamp"] == T


@pytest.mark.asyncio
async def test_post_reading_without_id(client: httpx.AsyncClient) -> None:
    response = await client.post("/api/weather", json={"temperature": 20})
    assert response.status_code == 400

    response = await client.get("/api/weather/senders/all")
    assert response.json()["count"] == 0


@pytest.mark.asyncio
async def test_post_reading_bad_value(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/api/weather", json={"id": 1, "temperature": "warm"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_post_reading_non_object(client: httpx.AsyncClient) -> None:
    response = await client.post("/api/weather", json=[1, 2])
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_post_reading_out_of_range_timestamp(
    client: httpx.AsyncClient,
) -> None:
    response = await client.post(
        "/api/weather", json={"id": 1, "unix": "inf", "temperature": 20}
    )
    assert response.status_code == 400

    response = await client.get("/api/weather/senders/all")
    assert response.json()["count"] == 0


@pytest.mark.asyncio
async def test_post_reading_reports_alerts(client: httpx.AsyncClient) -> None:
    await post_reading(client, id=1, temperature=20)
    response = await client.post(
        "/api/weather/alerts",
        json={
            "sender_id": 1,
            "alert_type": "temperature",
            "condition": ">",
            "threshold_value": 30,
        },
    )
    assert response.status_code == 201
    alert_id = response.json()["alert_id"]

    body = await post_reading(client, id=1, temperature=31)

    assert [a["id"] for a in body["alerts"]] == [alert_id]
    assert "alert_triggered" in await event_types(client)


@pytest.mark.asyncio
async def test_post_batch(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/api/weather/batch",
        json=[
            {"id": 1, "temperature": 20},
            {"id": -1},
            {"id": 2, "temperature": "bad"},
        ],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["processed"] == 1
    assert body["total"] == 3
    assert len(body["errors"]) == 1
    assert body["errors"][0]["sender_id"] == "2"

    response = await client.get("/api/weather/senders/list")
    assert response.json() == {"sender_1": "Sender 1"}


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [[], {"id": 1}])
async def test_post_batch_bad_body(
    client: httpx.AsyncClient, payload: Any
) -> None:
    response = await client.post("/api/weather/batch", json=payload)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_current_unknown_sender(client: httpx.AsyncClient) -> None:
    response = await client.get("/api/weather/current/42")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_current_without_readings(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/api/weather/senders", json={"sender_id": "7", "name": "Shed"}
    )
    assert response.status_code == 201

    response = await client.get("/api/weather/current/7")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_samples(client: httpx.AsyncClient) -> None:
    # No timestamp: stamped with the current time
    await post_reading(client, id=1, temperature=20)

    response = await client.get("/api/weather/1")
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["temperature"] == 20

    response = await client.get("/api/weather/2")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_range(client: httpx.AsyncClient) -> None:
    await post_reading(client, id=1, temperature=20)
    await post_reading(client, id=1, temperature=21)
    # Far outside any window
    await post_reading(client, id=1, temperature=0, unix=1000)

    response = await client.get("/api/weather/1/range", params={"hours": "2"})

    assert response.status_code == 200
    body = response.json()
    assert body["hours"] == 2
    assert body["count"] == 2
    assert body["sender"]["sender_id"] == "1"
    assert [d["temperature"] for d in body["data"]] == [20, 21]


@pytest.mark.asyncio
async def test_range_hours_fallback_and_cap(client: httpx.AsyncClient) -> None:
    await post_reading(client, id=1, temperature=20)

    response = await client.get("/api/weather/1/range", params={"hours": "x"})
    assert response.json()["hours"] == 24

    response = await client.get(
        "/api/weather/1/range", params={"hours": "100000"}
    )
    assert response.json()["hours"] == 720

    response = await client.get(
        "/api/weather/1/range", params={"hours": "3.5"}
    )
    assert response.json()["hours"] == 3


@pytest.mark.asyncio
async def test_averages(client: httpx.AsyncClient) -> None:
    await post_reading(client, id=1, temperature=10)
    await post_reading(client, id=1, temperature=20)

    response = await client.get("/api/weather/1/averages")

    assert response.status_code == 200
    body = response.json()
    assert body["hours"] == 24
    counts = sum(row["measurement_count"] for row in body["data"])
    assert counts == 2


@pytest.mark.asyncio
async def test_statistics(client: httpx.AsyncClient) -> None:
    await post_reading(client, id=1, temperature=10, unix=T + 10)
    await post_reading(client, id=1, temperature=20, unix=T + 20)
    at = datetime.fromtimestamp(T + 60, tz=timezone.utc).isoformat()

    response = await client.post(
        "/api/weather/1/statistics", json={"type": "hourly", "at": at}
    )
    assert response.status_code == 201
    stat = response.json()["statistic"]
    assert stat["data_points"] == 2
    assert stat["avg_temperature"] == pytest.approx(15)

    response = await client.get(
        "/api/weather/1/statistics", params={"type": "hourly"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "hourly"
    assert len(body["statistics"]) == 1


@pytest.mark.asyncio
async def test_statistics_errors(client: httpx.AsyncClient) -> None:
    response = await client.get("/api/weather/1/statistics")
    assert response.status_code == 404

    await post_reading(client, id=1, temperature=10, unix=T)

    response = await client.get(
        "/api/weather/1/statistics", params={"type": "yearly"}
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/weather/1/statistics", json={"type": "yearly"}
    )
    assert response.status_code == 400

    # The current hour holds no readings
    response = await client.post(
        "/api/weather/1/statistics", json={"type": "hourly"}
    )
    assert response.status_code == 404

    response = await client.post(
        "/api/weather/9/statistics", json={"type": "hourly"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_visualization(client: httpx.AsyncClient) -> None:
    await post_reading(client, id=1, temperature=10)
    await post_reading(client, id=2, temperature=20)
    await post_reading(client, id=2, temperature=30)

    response = await client.get(
        "/api/weather/visualization/data", params={"hours": 1000}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["hours"] == 168
    assert body["totalSenders"] == 2
    assert body["totalDataPoints"] == 3
    two = next(s for s in body["senders"] if s["sender"]["sender_id"] == "2")
    assert two["statistics"]["avg_temperature"] == pytest.approx(25)


@pytest.mark.asyncio
async def test_sender_registration(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/api/weather/senders",
        json={"sender_id": 3, "name": "Roof", "location": "North"},
    )
    assert response.status_code == 201
    assert response.json()["sender"]["sender_id"] == "3"

    response = await client.post(
        "/api/weather/senders", json={"sender_id": "3", "name": "Again"}
    )
    assert response.status_code == 409

    response = await client.get("/names")
    assert response.json() == {"sender_3": "Roof"}

    response = await client.get("/api/weather/senders/all")
    body = response.json()
    assert body["count"] == 1
    assert body["senders"][0]["location"] == "North"


@pytest.mark.asyncio
async def test_sender_update(client: httpx.AsyncClient) -> None:
    await post_reading(client, id=1, temperature=20)

    response = await client.put(
        "/api/weather/senders/1", json={"name": "Garden"}
    )
    assert response.status_code == 200
    assert response.json()["sender"]["name"] == "Garden"
    assert "sender_updated" in await event_types(client)

    response = await client.put("/api/weather/senders/1", json={})
    assert response.status_code == 400

    response = await client.put(
        "/api/weather/senders/99", json={"name": "Nobody"}
    )
    assert response.status_code == 404

    response = await client.put(
        "/api/weather/senders/1", json={"is_active": False}
    )
    assert response.status_code == 200
    response = await client.get("/api/weather/senders/list")
    assert response.json() == {}


@pytest.mark.asyncio
async def test_alert_lifecycle(client: httpx.AsyncClient) -> None:
    await post_reading(client, id=1, temperature=20)

    response = await client.post(
        "/api/weather/alerts",
        json={
            "sender_id": "1",
            "alert_type": "humidity",
            "condition": "below",
            "threshold_value": "15",
        },
    )
    assert response.status_code == 201
    alert_id = response.json()["alert_id"]

    response = await client.get("/api/weather/alerts/1")
    body = response.json()
    assert body["count"] == 1
    assert body["alerts"][0]["condition"] == "below"
    assert body["alerts"][0]["threshold_value"] == 15

    response = await client.delete(f"/api/weather/alerts/{alert_id}")
    assert response.status_code == 200

    response = await client.get("/api/weather/alerts/1")
    assert response.json()["count"] == 0

    response = await client.delete(f"/api/weather/alerts/{alert_id + 100}")
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, status_code",
    [
        ({"sender_id": "1", "alert_type": "temperature"}, 400),
        (
            {
                "sender_id": "1",
                "alert_type": "invalid_type",
                "condition": "above",
                "threshold_value": 1,
            },
            400,
        ),
        (
            {
                "sender_id": "1",
                "alert_type": "temperature",
                "condition": "above",
                "threshold_value": "hot",
            },
            400,
        ),
        (
            {
                "sender_id": "404",
                "alert_type": "temperature",
                "condition": "above",
                "threshold_value": 1,
            },
            404,
        ),
    ],
)
async def test_alert_create_errors(
    client: httpx.AsyncClient, payload: dict, status_code: int
) -> None:
    await post_reading(client, id=1, temperature=20)

    response = await client.post("/api/weather/alerts", json=payload)

    assert response.status_code == status_code
    response = await client.get("/api/weather/alerts/1")
    assert response.json()["count"] == 0


@pytest.mark.asyncio
async def test_logs(client: httpx.AsyncClient) -> None:
    await post_reading(client, id=1, temperature=20)
    await post_reading(client, id=2, temperature=20)

    response = await client.get(
        "/api/weather/logs", params={"sender_id": "2", "level": "info"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["logs"][0]["event_type"] == "sender_created"

    response = await client.get("/api/weather/logs", params={"level": "loud"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_storage_error_is_logged(
    client: httpx.AsyncClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    await post_reading(client, id=1, temperature=20)

    async def broken(*args: Any, **kwargs: Any) -> None:
        raise StorageError("database is locked")

    monkeypatch.setattr("weather_web.api.routes.weather.get_range", broken)

    response = await client.get("/api/weather/1/range")

    assert response.status_code == 500
    assert response.json()["status"] == "error"

    response = await client.get(
        "/api/weather/logs", params={"level": "error"}
    )
    event = response.json()["logs"][0]
    assert event["event_type"] == "range_get_failed"
    assert event["sender_id"] == "1"
    assert event["message"] == "database is locked"


@pytest.mark.asyncio
async def test_ingest_storage_error(
    client: httpx.AsyncClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def broken(*args: Any, **kwargs: Any) -> None:
        raise StorageError("disk full")

    monkeypatch.setattr("weather_web.services.ingest.insert_reading", broken)

    response = await client.post(
        "/api/weather", json={"id": 1, "temperature": 20}
    )

    assert response.status_code == 500
    assert "data_insert_failed" in await event_types(client)


def test_apps_get_their_own_database_manager() -> None:
    first = init_api()
    second = init_api()

    assert isinstance(first.state.db, DatabaseSessionManager)
    assert first.state.db is not second.state.db
    assert not first.state.db.initialised
