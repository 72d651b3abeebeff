from villa_booking.db.models import User, UserRole
from villa_booking.services.notification_service import NotificationKind, notifier


def _book(client, headers, start_date: str, end_date: str):
    return client.post("/bookings", headers=headers, json={"start_date": start_date, "end_date": end_date})


def test_create_booking_is_pending_with_derived_fields(client, auth_headers):
    headers = auth_headers("alice@example.com", firstname="Alice", lastname="Martin")

    response = _book(client, headers, "2025-03-10", "2025-03-14")

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["type"] == "booking"
    assert data["start"] == "2025-03-10T00:00:00"
    assert data["end"] == "2025-03-14T23:59:59"
    assert (data["start_day"], data["end_day"], data["duration"], data["gap"]) == (1, 5, 5, 2)
    assert data["overlap_warning"] is False
    assert data["conflicting_owners"] == []
    assert data["message"] == "Booking saved and awaiting admin approval."
    assert data["owner_name"] == "Alice Martin"
    assert data["validated_by"] is None


def test_cross_owner_overlap_returns_warning(client, auth_headers):
    alice = auth_headers("alice@example.com", firstname="Alice", lastname="Martin")
    bob = auth_headers("bob@example.com", firstname="Bob", lastname="Bernard")
    _book(client, alice, "2025-03-10", "2025-03-14")

    response = _book(client, bob, "2025-03-12", "2025-03-16")

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["overlap_warning"] is True
    assert data["conflicting_owners"] == ["Alice Martin"]
    assert "Alice Martin" in data["message"]


def test_same_owner_overlap_is_rejected(client, auth_headers):
    headers = auth_headers("alice@example.com")
    first = _book(client, headers, "2025-03-10", "2025-03-14")

    second = _book(client, headers, "2025-03-12", "2025-03-16")

    assert first.status_code == 201
    assert second.status_code == 422
    body = second.json()
    assert body["error"]["code"] == "booking_conflict"
    assert body["detail"]["booking_ids"] == [first.json()["id"]]
    mine = client.get("/bookings/me", headers=headers).json()
    assert [booking["id"] for booking in mine] == [first.json()["id"]]


def test_adjacent_stays_do_not_overlap(client, auth_headers):
    alice = auth_headers("alice@example.com")
    carol = auth_headers("carol@example.com")
    _book(client, alice, "2025-03-10", "2025-03-14")

    response = _book(client, carol, "2025-03-15", "2025-03-18")

    assert response.status_code == 201
    assert response.json()["overlap_warning"] is False
    assert response.json()["duration"] == 4


def test_end_before_start_is_rejected(client, auth_headers):
    headers = auth_headers("alice@example.com")

    response = _book(client, headers, "2025-03-14", "2025-03-10")

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_unparseable_date_is_rejected(client, auth_headers):
    headers = auth_headers("alice@example.com")

    response = _book(client, headers, "next tuesday", "2025-03-10")

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_new_booking_notifies_admins_with_overlaps(client, auth_headers):
    alice = auth_headers("alice@example.com", firstname="Alice", lastname="Martin")
    bob = auth_headers("bob@example.com")
    existing = _book(client, alice, "2025-03-10", "2025-03-14").json()

    _book(client, bob, "2025-03-14", "2025-03-20")

    kinds = [item.kind for item in notifier.sent]
    assert kinds == [NotificationKind.NEW_BOOKING, NotificationKind.NEW_BOOKING]
    assert [item.booking_id for item in notifier.sent[-1].overlapping] == [existing["id"]]


def test_cancel_frees_the_dates(client, auth_headers):
    headers = auth_headers("alice@example.com")
    booking = _book(client, headers, "2025-03-10", "2025-03-14").json()

    cancel = client.patch(f"/bookings/{booking['id']}/cancel", headers=headers)
    again = client.patch(f"/bookings/{booking['id']}/cancel", headers=headers)
    rebook = _book(client, headers, "2025-03-10", "2025-03-14")

    assert cancel.status_code == 200
    assert cancel.json()["status"] == "cancelled"
    assert again.status_code == 422
    assert again.json()["error"]["code"] == "invalid_state"
    assert rebook.status_code == 201
    assert rebook.json()["overlap_warning"] is False


def test_owner_updates_pending_booking(client, auth_headers):
    headers = auth_headers("alice@example.com")
    booking = _book(client, headers, "2025-03-10", "2025-03-14").json()

    response = client.patch(f"/bookings/{booking['id']}", headers=headers, json={"end_date": "2025-03-16"})

    assert response.status_code == 200
    data = response.json()
    assert data["end"] == "2025-03-16T23:59:59"
    assert data["duration"] == 7
    assert data["gap"] == 0
    assert data["status"] == "pending"
    assert data["message"] == "Booking updated."


def test_owner_update_overlapping_others_notifies_admins(client, auth_headers):
    alice = auth_headers("alice@example.com")
    bob = auth_headers("bob@example.com", firstname="Bob", lastname="Bernard")
    _book(client, bob, "2025-03-20", "2025-03-22")
    booking = _book(client, alice, "2025-03-10", "2025-03-14").json()
    notifier.reset()

    response = client.patch(f"/bookings/{booking['id']}", headers=alice, json={"end_date": "2025-03-21"})

    assert response.status_code == 200
    assert response.json()["overlap_warning"] is True
    assert response.json()["conflicting_owners"] == ["Bob Bernard"]
    assert [item.kind for item in notifier.sent] == [NotificationKind.OVERLAP_UPDATE]


def test_owner_cannot_edit_approved_booking(client, auth_headers):
    headers = auth_headers("alice@example.com")
    admin = auth_headers("admin@example.com", role=UserRole.ADMIN)
    booking = _book(client, headers, "2025-03-10", "2025-03-14").json()
    client.post(f"/admin/reservations/{booking['id']}/approve", headers=admin)

    response = client.patch(f"/bookings/{booking['id']}", headers=headers, json={"end_date": "2025-03-16"})

    assert response.status_code == 403


def test_stranger_cannot_view_edit_or_cancel(client, auth_headers):
    owner = auth_headers("owner@example.com")
    stranger = auth_headers("stranger@example.com")
    booking = _book(client, owner, "2025-03-10", "2025-03-14").json()

    view = client.get(f"/bookings/{booking['id']}", headers=stranger)
    edit = client.patch(f"/bookings/{booking['id']}", headers=stranger, json={"end_date": "2025-03-16"})
    cancel = client.patch(f"/bookings/{booking['id']}/cancel", headers=stranger)
    ics = client.get(f"/bookings/{booking['id']}/calendar.ics", headers=stranger)

    assert [view.status_code, edit.status_code, cancel.status_code, ics.status_code] == [403, 403, 403, 403]
    assert view.json()["detail"] == "Not enough permissions"


def test_get_unknown_booking_returns_404(client, auth_headers):
    headers = auth_headers("alice@example.com")

    response = client.get("/bookings/9999", headers=headers)

    assert response.status_code == 404
    assert response.json()["detail"] == "Booking not found"


def test_download_booking_calendar_file(client, auth_headers):
    headers = auth_headers("alice@example.com", firstname="Alice", lastname="Martin")
    booking = _book(client, headers, "2025-03-10", "2025-03-14").json()

    response = client.get(f"/bookings/{booking['id']}/calendar.ics", headers=headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/calendar")
    assert response.headers["content-disposition"] == f'attachment; filename="booking-{booking["id"]}.ics"'
    body = response.text
    assert "BEGIN:VEVENT" in body
    assert "SUMMARY:Stay - Alice Martin" in body
    assert "DTSTART;VALUE=DATE:20250310" in body
    assert "DTEND;VALUE=DATE:20250315" in body
    assert "STATUS:TENTATIVE" in body


def test_calendar_lists_everyone_but_skips_cancelled(client, auth_headers):
    alice = auth_headers("alice@example.com")
    bob = auth_headers("bob@example.com")
    kept = _book(client, alice, "2025-03-10", "2025-03-14").json()
    cancelled = _book(client, bob, "2025-03-12", "2025-03-13").json()
    _book(client, bob, "2025-05-01", "2025-05-03")
    client.patch(f"/bookings/{cancelled['id']}/cancel", headers=bob)

    response = client.get("/bookings?date_from=2025-03-01&date_to=2025-03-31", headers=bob)

    assert response.status_code == 200
    assert [booking["id"] for booking in response.json()] == [kept["id"]]


def test_list_my_bookings_with_filters(client, auth_headers):
    headers = auth_headers("alice@example.com")
    first = _book(client, headers, "2025-03-10", "2025-03-14").json()
    second = _book(client, headers, "2025-04-10", "2025-04-12").json()
    client.patch(f"/bookings/{first['id']}/cancel", headers=headers)

    pending = client.get("/bookings/me?status=pending", headers=headers)
    april = client.get("/bookings/me?date_from=2025-04-01&date_to=2025-04-30", headers=headers)
    paged = client.get("/bookings/me?limit=1&offset=1", headers=headers)

    assert [booking["id"] for booking in pending.json()] == [second["id"]]
    assert [booking["id"] for booking in april.json()] == [second["id"]]
    assert [booking["id"] for booking in paged.json()] == [second["id"]]


def test_unvalidated_token_holder_is_blocked(client, auth_headers, db_session):
    headers = auth_headers("alice@example.com")
    user = db_session.query(User).filter_by(email="alice@example.com").one()
    user.admin_validated = False
    db_session.commit()

    response = _book(client, headers, "2025-03-10", "2025-03-14")

    assert response.status_code == 403
