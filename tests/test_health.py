from eventbook.core.settings import settings
from eventbook.main import app
from eventbook.services import booking_service


async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["docs"] == "/api/v1/docs"


async def test_health_reports_database_and_cache(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"] == {"database": True, "cache": True}


async def test_request_id_header_is_echoed(client):
    response = await client.get("/", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"
    assert response.headers["X-Response-Time"].endswith("s")


async def test_metrics_count_booking_outcomes(db, client, make_user, make_event):
    user = await make_user()
    event = await make_event(total_seats=1)
    await booking_service.reserve(db, user.id, event.id, 1)
    other = await make_user()
    await booking_service.reserve(db, other.id, event.id, 1)

    response = await client.get("/metrics")

    assert response.status_code == 200
    text = response.text
    assert 'booking_operations_total{operation="reserve",outcome="success"}' in text
    assert (
        'booking_operations_total{operation="reserve",outcome="INSUFFICIENT_SEATS"}'
        in text
    )
    assert "http_requests_total" in text


def test_debug_flag_follows_settings():
    assert app.debug is settings.DEBUG
