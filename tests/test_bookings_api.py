from datetime import timedelta

from conftest import bearer, day_range, dev_user, future_day, register

def create(client, room_id, day, start="10:00:00", end="12:00:00", headers=None, **extra):
    payload = {"room_id": room_id, **day_range(day, start, end), **extra}
    return client.post("/book", json=payload, headers=headers or {})

def test_create_booking(client, room):
    day = future_day()
    response = create(client, room["id"], day, notes="Standup")

    assert response.status_code == 201
    data = response.json()
    assert data["id"]
    assert data["room_id"] == room["id"]
    assert data["status"] == "pending"
    assert data["notes"] == "Standup"
    assert data["user_id"] is None
    assert data["start_time"].startswith(f"{day.isoformat()}T10:00:00")

def test_create_with_date_books_whole_day(client, room):
    day = future_day()
    response = client.post("/book", json={"room_id": room["id"], "date": day.isoformat()})

    assert response.status_code == 201
    data = response.json()
    assert data["start_time"].startswith(f"{day.isoformat()}T00:00:00")
    assert data["end_time"].startswith(f"{day.isoformat()}T23:59:59")

def test_overlapping_booking_conflicts(client, room):
    day = future_day()
    assert create(client, room["id"], day, "10:00:00", "12:00:00").status_code == 201

    response = create(client, room["id"], day, "11:00:00", "13:00:00")
    assert response.status_code == 409
    assert response.json() == {"error": "Room unavailable for selected date/time"}

    # Enclosing range overlaps too
    assert create(client, room["id"], day, "09:00:00", "14:00:00").status_code == 409

def test_adjacent_booking_is_allowed(client, room):
    day = future_day()
    assert create(client, room["id"], day, "10:00:00", "12:00:00").status_code == 201
    assert create(client, room["id"], day, "12:00:00", "13:00:00").status_code == 201
    assert create(client, room["id"], day, "08:00:00", "10:00:00").status_code == 201

def test_other_room_is_unaffected(client, room, admin_headers):
    other = client.post("/products", json={"name": "Green Room"}, headers=admin_headers).json()
    day = future_day()
    assert create(client, room["id"], day).status_code == 201
    assert create(client, other["id"], day).status_code == 201

def test_availability_reflects_bookings(client, room):
    booked_day, free_day = future_day(10), future_day(11)
    assert create(client, room["id"], booked_day).status_code == 201

    url = f"/book/availability?room_id={room['id']}&date="
    assert client.get(url + booked_day.isoformat()).json() == {"available": False}
    assert client.get(url + free_day.isoformat()).json() == {"available": True}

    # Repeated queries give the same answer
    assert client.get(url + booked_day.isoformat()).json() == {"available": False}

def test_availability_requires_params(client, room):
    response = client.get("/book/availability?date=2030-01-01")
    assert response.status_code == 400
    assert response.json() == {"error": "room_id and date required"}

    assert client.get(f"/book/availability?room_id={room['id']}").status_code == 400
    assert client.get(f"/book/availability?room_id={room['id']}&date=soon").status_code == 400

def test_validation_errors(client, room):
    day = future_day()

    response = client.post("/book", json=day_range(day))
    assert response.status_code == 400
    assert response.json() == {"error": "room_id required"}

    response = client.post("/book", json={"room_id": room["id"]})
    assert response.status_code == 400
    assert response.json() == {"error": "start_time and end_time (or date) required"}

    response = client.post("/book", json={"room_id": room["id"], "start_time": "nope", "end_time": "later"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid start_time/end_time"}

def test_start_equal_to_end_is_rejected(client, room):
    response = create(client, room["id"], future_day(), "10:00:00", "10:00:00")
    assert response.status_code == 400

def test_end_before_start_is_rejected(client, room):
    response = create(client, room["id"], future_day(), "12:00:00", "10:00:00")
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid start_time/end_time"}

def test_booking_across_midnight_is_rejected(client, room):
    day = future_day()
    next_day = day + timedelta(days=1)
    response = client.post("/book", json={
        "room_id": room["id"],
        "start_time": f"{day.isoformat()}T23:59:58Z",
        "end_time": f"{next_day.isoformat()}T00:00:02Z",
    })
    assert response.status_code == 400
    assert response.json() == {"error": "Reservation must be within one day"}

def test_booking_longer_than_a_day_is_rejected(client, room):
    day = future_day()
    next_day = day + timedelta(days=1)
    response = client.post("/book", json={
        "room_id": room["id"],
        "start_time": f"{day.isoformat()}T00:00:00Z",
        "end_time": f"{next_day.isoformat()}T00:00:01Z",
    })
    assert response.status_code == 400

def test_past_dates_are_rejected(client, room):
    past = future_day(-2)

    response = client.post("/book", json={"room_id": room["id"], "date": past.isoformat()})
    assert response.status_code == 400
    assert response.json() == {"error": "Cannot create booking for past dates"}

    assert create(client, room["id"], past).status_code == 400

def test_user_cannot_book_for_someone_else(client, room):
    response = create(client, room["id"], future_day(), headers=dev_user(5), user_id=6)
    assert response.status_code == 403

def test_user_booking_is_forced_to_own_id(client, room):
    response = create(client, room["id"], future_day(), headers=dev_user(5))
    assert response.status_code == 201
    assert response.json()["user_id"] == 5

def test_admin_may_book_for_anyone(client, room, admin_headers):
    response = create(client, room["id"], future_day(), headers=admin_headers, user_id=6)
    assert response.status_code == 201
    assert response.json()["user_id"] == 6

def test_get_booking_by_id(client, room):
    booking = create(client, room["id"], future_day()).json()

    response = client.get(f"/book/{booking['id']}")
    assert response.status_code == 200
    assert response.json() == booking

    response = client.get("/book/9999")
    assert response.status_code == 404
    assert response.json() == {"error": "Booking not found"}

def test_delete_permissions(client, room, admin_headers):
    day = future_day()
    mine = create(client, room["id"], day, "08:00:00", "09:00:00", headers=dev_user(5)).json()
    also_mine = create(client, room["id"], day, "09:00:00", "10:00:00", headers=dev_user(5)).json()

    assert client.delete(f"/book/{mine['id']}").status_code == 401

    response = client.delete(f"/book/{mine['id']}", headers=dev_user(7))
    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden"}

    assert client.delete(f"/book/{mine['id']}", headers=dev_user(5)).status_code == 204
    assert client.get(f"/book/{mine['id']}").status_code == 404

    assert client.delete(f"/book/{also_mine['id']}", headers=admin_headers).status_code == 204

def test_delete_missing_booking(client, admin_headers):
    assert client.delete("/book/9999", headers=admin_headers).status_code == 404

def test_freed_slot_can_be_rebooked(client, room):
    day = future_day()
    booking = create(client, room["id"], day, headers=dev_user(5)).json()
    assert client.delete(f"/book/{booking['id']}", headers=dev_user(5)).status_code == 204

    assert create(client, room["id"], day).status_code == 201

def test_my_bookings_are_scoped_to_caller(client, room):
    day = future_day()
    user = register(client, "u@x.com", name="Una")
    user_id = user["user"]["id"]
    headers = bearer(user["token"])

    create(client, room["id"], day, "08:00:00", "09:00:00", headers=headers)
    create(client, room["id"], day, "09:00:00", "10:00:00", headers=dev_user(user_id + 100))

    response = client.get("/book/my", headers=headers)
    assert response.status_code == 200
    bookings = response.json()
    assert len(bookings) == 1
    assert bookings[0]["user_id"] == user_id
    assert bookings[0]["room_name"] == "Blue Room"
    assert bookings[0]["user_email"] == "u@x.com"
    assert bookings[0]["user_name"] == "Una"

def test_admin_listing_requires_admin(client):
    assert client.get("/book").status_code == 401
    assert client.get("/book", headers=dev_user(5)).status_code == 403

def test_admin_listing_and_filters(client, room, admin_headers):
    user = register(client, "una@x.com", name="Una")
    headers = bearer(user["token"])
    day, later = future_day(10), future_day(12)
    first = create(client, room["id"], day, headers=headers).json()
    second = create(client, room["id"], later).json()

    response = client.get("/book", headers=admin_headers)
    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [first["id"], second["id"]]
    assert response.json()[0]["room_name"] == "Blue Room"

    response = client.get("/book?user=UNA", headers=admin_headers)
    assert [b["id"] for b in response.json()] == [first["id"]]

    response = client.get(f"/book?date_from={later.isoformat()}", headers=admin_headers)
    assert [b["id"] for b in response.json()] == [second["id"]]

    response = client.get(f"/book?date_to={day.isoformat()}", headers=admin_headers)
    assert [b["id"] for b in response.json()] == [first["id"]]

    response = client.get(f"/book?room_id={room['id'] + 1}", headers=admin_headers)
    assert response.json() == []

    response = client.get("/book?status=pending", headers=admin_headers)
    assert len(response.json()) == 2

def test_update_status(client, room, admin_headers):
    booking = create(client, room["id"], future_day()).json()

    response = client.patch(f"/book/{booking['id']}/status", json={"status": "confirmed"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert response.json()["room_name"] == "Blue Room"

    response = client.get("/book?status=confirmed", headers=admin_headers)
    assert [b["id"] for b in response.json()] == [booking["id"]]

def test_update_status_errors(client, room, admin_headers):
    booking = create(client, room["id"], future_day()).json()
    url = f"/book/{booking['id']}/status"

    assert client.patch(url, json={"status": "confirmed"}, headers=dev_user(5)).status_code == 403
    assert client.patch(url, json={}, headers=admin_headers).status_code == 400
    assert client.patch(url, json={"status": "  "}, headers=admin_headers).status_code == 400
    assert client.patch("/book/9999/status", json={"status": "confirmed"}, headers=admin_headers).status_code == 404
