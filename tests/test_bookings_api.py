import uuid

from eventbook.core.errors import Busy
from eventbook.models import UserRole
from eventbook.services import booking_service

BOOKINGS_URL = "/api/v1/bookings/"


async def _book(client, headers, event_id, seats=1):
    return await client.post(
        BOOKINGS_URL,
        json={"event_id": str(event_id), "number_of_seats": seats},
        headers=headers,
    )


async def test_booking_requires_authentication(client, make_event):
    event = await make_event()

    response = await client.post(
        BOOKINGS_URL, json={"event_id": str(event.id), "number_of_seats": 1}
    )

    assert response.status_code == 401


async def test_seat_count_validated_by_schema(client, make_user, make_event, headers_for):
    user = await make_user()
    event = await make_event()

    for seats in (0, 11):
        response = await _book(client, headers_for(user), event.id, seats)
        assert response.status_code == 422


async def test_booking_defaults_to_one_seat(
    client, make_user, make_event, headers_for, seats_left
):
    user = await make_user()
    event = await make_event(total_seats=10)

    response = await client.post(
        BOOKINGS_URL, json={"event_id": str(event.id)}, headers=headers_for(user)
    )

    assert response.status_code == 201
    assert response.json()["number_of_seats"] == 1
    assert await seats_left(event.id) == 9


async def test_booking_unknown_event(client, make_user, headers_for):
    user = await make_user()

    response = await _book(client, headers_for(user), uuid.uuid4())

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"


async def test_deactivated_user_cannot_book(client, make_user, make_event, headers_for):
    user = await make_user(is_active=False)
    event = await make_event()

    response = await _book(client, headers_for(user), event.id)

    assert response.status_code == 403


async def test_my_bookings_lists_only_own(client, make_user, make_event, headers_for):
    alice = await make_user()
    bob = await make_user()
    first = await make_event(title="First")
    second = await make_event(title="Second")
    await _book(client, headers_for(alice), first.id, 2)
    await _book(client, headers_for(alice), second.id, 1)
    await _book(client, headers_for(bob), first.id, 1)

    response = await client.get(
        f"{BOOKINGS_URL}my-bookings", headers=headers_for(alice)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert {item["event"]["title"] for item in body["items"]} == {"First", "Second"}
    assert all(item["user_id"] == str(alice.id) for item in body["items"])


async def test_my_bookings_status_filter(client, make_user, make_event, headers_for):
    user = await make_user()
    kept = await make_event()
    dropped = await make_event()
    await _book(client, headers_for(user), kept.id)
    cancelled = (await _book(client, headers_for(user), dropped.id)).json()
    await client.patch(
        f"{BOOKINGS_URL}{cancelled['id']}/cancel", headers=headers_for(user)
    )

    response = await client.get(
        f"{BOOKINGS_URL}my-bookings",
        params={"status": "cancelled"},
        headers=headers_for(user),
    )

    assert [item["id"] for item in response.json()["items"]] == [cancelled["id"]]


async def test_read_booking_owner_admin_and_stranger(
    client, make_user, make_event, headers_for
):
    owner = await make_user()
    stranger = await make_user()
    admin = await make_user(role=UserRole.ADMIN)
    event = await make_event()
    booking = (await _book(client, headers_for(owner), event.id)).json()
    url = f"{BOOKINGS_URL}{booking['id']}"

    assert (await client.get(url, headers=headers_for(owner))).status_code == 200
    assert (await client.get(url, headers=headers_for(admin))).status_code == 200
    assert (await client.get(url, headers=headers_for(stranger))).status_code == 403
    missing = await client.get(f"{BOOKINGS_URL}{uuid.uuid4()}", headers=headers_for(owner))
    assert missing.status_code == 404


async def test_cancel_by_stranger_is_forbidden(
    client, make_user, make_event, headers_for, seats_left
):
    owner = await make_user()
    stranger = await make_user()
    event = await make_event(total_seats=10)
    booking = (await _book(client, headers_for(owner), event.id, 3)).json()

    response = await client.patch(
        f"{BOOKINGS_URL}{booking['id']}/cancel", headers=headers_for(stranger)
    )

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "FORBIDDEN"
    assert await seats_left(event.id) == 7


async def test_cancel_twice_returns_bad_request(client, make_user, make_event, headers_for):
    user = await make_user()
    event = await make_event()
    booking = (await _book(client, headers_for(user), event.id)).json()
    url = f"{BOOKINGS_URL}{booking['id']}/cancel"

    assert (await client.patch(url, headers=headers_for(user))).status_code == 200
    response = await client.patch(url, headers=headers_for(user))

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "NOT_CANCELLABLE"


async def test_busy_maps_to_service_unavailable(
    client, make_user, make_event, headers_for, monkeypatch
):
    user = await make_user()
    event = await make_event()

    async def busy(*args, **kwargs):
        return None, Busy()

    monkeypatch.setattr(booking_service, "reserve", busy)

    response = await _book(client, headers_for(user), event.id)

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.json()["detail"]["code"] == "BUSY"


async def test_admin_listing_and_stats(client, make_user, make_event, headers_for):
    admin = await make_user(role=UserRole.ADMIN)
    users = [await make_user() for _ in range(3)]
    event = await make_event()
    other = await make_event()
    for user in users:
        await _book(client, headers_for(user), event.id, 2)
    await _book(client, headers_for(users[0]), other.id, 1)

    response = await client.get(
        f"{BOOKINGS_URL}all",
        params={"event_id": str(event.id)},
        headers=headers_for(admin),
    )
    assert response.status_code == 200
    assert response.json()["total"] == 3

    stats = await client.get(f"{BOOKINGS_URL}stats", headers=headers_for(admin))
    assert stats.status_code == 200
    body = stats.json()
    assert body["total_bookings"] == 4
    assert body["total_seats"] == 7
    assert body["total_revenue"] == 175.0

    forbidden = await client.get(f"{BOOKINGS_URL}all", headers=headers_for(users[0]))
    assert forbidden.status_code == 403
