"""Tests for availability, bookings, payment and rental history."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from app.studiorent import create_app
from app.studiorent import auth as auth_module
from app.studiorent.db import session_scope
from app.studiorent.models import (
    Base,
    Employee,
    Instrument,
    Membership,
    Permission,
    RentalTransaction,
    Role,
    Room,
    User,
)
from app.studiorent.modules.rentals.service import mark_as_paid


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("LATE_FEE_RATE_PER_DAY", "10000")
    auth_module._login_attempts.clear()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        p = Permission(key="catalog.edit", name="Catalog: edit instruments and rooms")
        staff = Role(key="staff", name="Staff")
        staff.permissions.append(p)
        u = User(email="staff@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(staff)
        s.add_all([p, staff, u, Role(key="student", name="Student")])
        s.add_all(
            [
                Employee(empl_nik="3170000000000002", empl_name="Budi"),
                Employee(empl_nik="3170000000000001", empl_name="Front Desk"),
                Instrument(inst_id="GTR-001", inst_name="Acoustic Guitar", inst_type="Guitar", inst_rentalprice=Decimal("15000")),
                Instrument(inst_id="KEY-001", inst_name="Digital Piano", inst_type="Keyboard", inst_rentalprice=Decimal("40000")),
                Room(room_id="R-101", room_name="Practice Room A", room_size="Small", room_rentrate=Decimal("50000")),
                Room(room_id="R-201", room_name="Band Studio", room_size="Large", room_rentrate=Decimal("150000")),
            ]
        )
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _signup(client, stdn_id="22001234", email="ayu@example.com"):
    r = client.post(
        "/auth/signup",
        json={
            "email": email,
            "password": "secret1",
            "stdn_id": stdn_id,
            "stdn_name": "Student " + stdn_id,
            "stdn_telpnum": "081234567890",
        },
    )
    assert r.status_code == 201
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _login(client, email, password="pw"):
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _book_room(client, headers, room_id="R-101", start="2099-01-10T10:00:00Z", end="2099-01-10T12:00:00Z", **extra):
    payload = {"room_id": room_id, "rent_start": start, "rent_end": end}
    payload.update(extra)
    return client.post("/api/bookings/room", json=payload, headers=headers)


def _book_instrument(client, headers, inst_id="GTR-001", start="2099-01-10T10:00:00Z", end="2099-01-10T12:00:00Z", **extra):
    payload = {"instrument_id": inst_id, "rent_start": start, "rent_end": end}
    payload.update(extra)
    return client.post("/api/bookings/instrument", json=payload, headers=headers)


# ---------- Availability ----------
def test_availability_missing_params(client):
    r = client.get("/api/availability/room?roomId=R-101&start=2099-01-10T10:00:00Z")
    assert r.status_code == 400
    assert r.json["error"] == "Missing roomId, start, or end parameters"


@pytest.mark.parametrize(
    "start,end",
    [
        ("2099-01-10T12:00:00Z", "2099-01-10T10:00:00Z"),
        ("2099-01-10T10:00:00Z", "2099-01-10T10:00:00Z"),
        ("not-a-date", "2099-01-10T10:00:00Z"),
    ],
)
def test_availability_invalid_range(client, start, end):
    r = client.get("/api/availability/room", query_string={"roomId": "R-101", "start": start, "end": end})
    assert r.status_code == 400
    assert r.json["error"] == "Invalid date range"


@pytest.mark.parametrize(
    "start,end",
    [
        ("0001-01-01T00:00:00+01:00", "2099-01-10T10:00:00Z"),
        ("2099-01-10T10:00:00Z", "9999-12-31T23:30:00-01:00"),
    ],
)
def test_availability_out_of_range_offset(client, start, end):
    r = client.get("/api/availability/room", query_string={"roomId": "R-101", "start": start, "end": end})
    assert r.status_code == 400
    assert r.json["error"] == "Invalid date range"


def test_booking_out_of_range_offset(client):
    headers = _signup(client)
    r = _book_room(client, headers, start="0001-01-01T00:00:00+01:00", end="2099-01-10T10:00:00Z")
    assert r.status_code == 400
    assert r.json["error"] == "Invalid date range"


def test_availability_unknown_room(client):
    r = client.get(
        "/api/availability/room",
        query_string={"roomId": "R-999", "start": "2099-01-10T10:00:00Z", "end": "2099-01-10T11:00:00Z"},
    )
    assert r.status_code == 404


def test_availability_reflects_bookings(client):
    def available(start, end):
        r = client.get("/api/availability/room", query_string={"roomId": "R-101", "start": start, "end": end})
        assert r.status_code == 200
        return r.json["isAvailable"]

    assert available("2099-01-10T10:00:00Z", "2099-01-10T12:00:00Z") is True

    headers = _signup(client)
    assert _book_room(client, headers).status_code == 201

    assert available("2099-01-10T11:00:00Z", "2099-01-10T13:00:00Z") is False
    assert available("2099-01-10T09:00:00Z", "2099-01-10T14:00:00Z") is False
    # touching intervals do not overlap
    assert available("2099-01-10T12:00:00Z", "2099-01-10T13:00:00Z") is True
    assert available("2099-01-10T08:00:00Z", "2099-01-10T10:00:00Z") is True


def test_availability_honours_timezone_offset(client):
    headers = _signup(client)
    _book_room(client, headers)
    # 17:30 at +07:00 is 10:30 UTC
    r = client.get(
        "/api/availability/room",
        query_string={"roomId": "R-101", "start": "2099-01-10T17:30:00+07:00", "end": "2099-01-10T18:00:00+07:00"},
    )
    assert r.json["isAvailable"] is False


# ---------- Room bookings ----------
def test_book_room(client):
    headers = _signup(client)
    r = _book_room(client, headers)
    assert r.status_code == 201
    assert r.json["message"] == "Room booking successful!"
    trsc = r.json["transaction"]
    assert r.json["transactionId"] == trsc["trsc_id"]
    assert trsc["trsc_id"].startswith("TRX")
    assert trsc["trsc_totalprice"] == 100000.0
    assert trsc["trsc_latefee"] == 0.0
    assert trsc["payment_status"] == "Unpaid"
    assert trsc["trsc_paymentmethod"] == "Card"
    assert trsc["Student_stdn_id"] == "22001234"
    assert trsc["Employee_empl_nik"] == "3170000000000001"
    assert trsc["Room_room_id"] == "R-101"
    assert trsc["Room"] == {"room_name": "Practice Room A"}
    assert trsc["instruments"] == []
    assert trsc["trsc_rentstart"] == "2099-01-10T10:00:00"


@pytest.mark.parametrize(
    "end,expected",
    [
        ("2099-01-10T10:15:00Z", 50000.0),
        ("2099-01-10T11:00:00Z", 50000.0),
        ("2099-01-10T11:30:00Z", 100000.0),
    ],
)
def test_room_price_per_started_hour(client, end, expected):
    headers = _signup(client)
    r = _book_room(client, headers, start="2099-01-10T10:00:00Z", end=end)
    assert r.status_code == 201
    assert r.json["transaction"]["trsc_totalprice"] == expected


def test_room_double_booking_conflict(app, client):
    headers = _signup(client)
    assert _book_room(client, headers).status_code == 201

    r = _book_room(client, headers, start="2099-01-10T11:00:00Z", end="2099-01-10T13:00:00Z")
    assert r.status_code == 409
    assert r.json["error"] == "This time slot is no longer available."

    with session_scope(app) as s:
        assert s.query(RentalTransaction).count() == 1


def test_room_back_to_back_bookings(client):
    headers = _signup(client)
    assert _book_room(client, headers).status_code == 201
    r = _book_room(client, headers, start="2099-01-10T12:00:00Z", end="2099-01-10T13:00:00Z")
    assert r.status_code == 201


def test_same_period_other_room(client):
    headers = _signup(client)
    assert _book_room(client, headers).status_code == 201
    r = _book_room(client, headers, room_id="R-201")
    assert r.status_code == 201
    assert r.json["transaction"]["trsc_totalprice"] == 300000.0


def test_booking_validation(client):
    headers = _signup(client)
    r = client.post("/api/bookings/room", json={"room_id": "R-101"}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "Missing required booking details."

    r = _book_room(client, headers, start="2099-01-10T12:00:00Z", end="2099-01-10T10:00:00Z")
    assert r.status_code == 400
    assert r.json["error"] == "Invalid date range"

    r = _book_room(client, headers, payment_method="Bitcoin")
    assert r.status_code == 400
    assert r.json["error"] == "Invalid payment method. Must be one of: Card, Cash, Bank Transfer, E-Wallet"

    r = _book_instrument(client, headers, payment_method="Cheque")
    assert r.status_code == 400
    assert client.get("/api/instruments/GTR-001").json["inst_status"] == "Ready"

    r = _book_room(client, headers, room_id="R-999")
    assert r.status_code == 404


def test_booking_requires_login(client):
    token = client.get("/auth/session").json["csrf_token"]
    r = _book_room(client, {"X-CSRF-Token": token})
    assert r.status_code == 401


def test_booking_for_another_student_forbidden(client):
    _signup(client, stdn_id="22009999", email="other@example.com")
    client.post("/auth/logout")
    headers = _signup(client)
    r = _book_room(client, headers, student_stdn_id="22009999")
    assert r.status_code == 403
    assert r.json["error"] == "You can only book for your own student account."


def test_staff_books_on_behalf_of_student(client):
    _signup(client)
    client.post("/auth/logout")
    headers = _login(client, "staff@example.com")

    r = _book_room(client, headers)
    assert r.status_code == 400

    r = _book_room(client, headers, student_stdn_id="22001234", payment_method="Cash")
    assert r.status_code == 201
    assert r.json["transaction"]["Student_stdn_id"] == "22001234"
    assert r.json["transaction"]["trsc_paymentmethod"] == "Cash"


def test_booking_without_employee_fails(app, client):
    with session_scope(app) as s:
        s.query(Employee).delete()
    headers = _signup(client)
    r = _book_room(client, headers)
    assert r.status_code == 500
    assert r.json["error"] == "Internal server error: Could not assign employee."

    with session_scope(app) as s:
        assert s.query(RentalTransaction).count() == 0


# ---------- Instrument bookings ----------
def test_book_instrument(client):
    headers = _signup(client)
    r = _book_instrument(client, headers)
    assert r.status_code == 201
    assert r.json["message"] == "Booking successful!"
    trsc = r.json["transaction"]
    assert trsc["trsc_totalprice"] == 30000.0
    assert trsc["Room_room_id"] is None
    assert [i["inst_id"] for i in trsc["instruments"]] == ["GTR-001"]

    r = client.get("/api/instruments/GTR-001")
    assert r.json["inst_status"] == "InUse"
    r = client.get("/api/instruments")
    assert "GTR-001" not in [i["inst_id"] for i in r.json["instruments"]]


def test_instrument_not_ready(client):
    headers = _signup(client)
    assert _book_instrument(client, headers).status_code == 201

    r = _book_instrument(client, headers, start="2099-02-01T10:00:00Z", end="2099-02-01T11:00:00Z")
    assert r.status_code == 409
    assert r.json["error"] == "Instrument 'GTR-001' is not available. Current status: InUse"


def test_instrument_with_room(client):
    headers = _signup(client)
    r = _book_instrument(client, headers, room_id="R-101")
    assert r.status_code == 201
    trsc = r.json["transaction"]
    assert trsc["Room_room_id"] == "R-101"
    assert trsc["trsc_totalprice"] == 130000.0

    # the room is now taken for that slot
    r = _book_room(client, headers)
    assert r.status_code == 409


def test_instrument_with_busy_room_leaves_nothing_behind(app, client):
    headers = _signup(client)
    assert _book_room(client, headers).status_code == 201

    r = _book_instrument(client, headers, room_id="R-101", start="2099-01-10T11:00:00Z", end="2099-01-10T12:00:00Z")
    assert r.status_code == 409

    assert client.get("/api/instruments/GTR-001").json["inst_status"] == "Ready"
    with session_scope(app) as s:
        assert s.query(RentalTransaction).count() == 1


# ---------- Membership points ----------
def test_points_awarded_to_members(app, client):
    headers = _signup(client)
    assert client.post("/api/membership", headers=headers).status_code == 201

    assert _book_room(client, headers).status_code == 201
    assert _book_instrument(client, headers).status_code == 201

    r = client.get("/api/membership")
    # 100000 / 10 + 30000 / 10
    assert r.json["membership"]["mmbr_points"] == 13000


def test_no_points_without_membership(app, client):
    headers = _signup(client)
    assert _book_room(client, headers).status_code == 201
    with session_scope(app) as s:
        assert s.query(Membership).count() == 0


# ---------- Payment ----------
def test_mark_as_paid_requires_transaction_id(client):
    headers = _signup(client)
    r = client.post("/api/payments/mark-as-paid", json={}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "Transaction ID is required."

    r = client.post("/api/payments/mark-as-paid", json={"transactionId": "TRX0NOPE"}, headers=headers)
    assert r.status_code == 404


def test_mark_as_paid_on_time(client):
    headers = _signup(client)
    trsc_id = _book_instrument(client, headers).json["transactionId"]

    r = client.post("/api/payments/mark-as-paid", json={"transactionId": trsc_id}, headers=headers)
    assert r.status_code == 200
    assert r.json["payment_status"] == "Paid"
    assert r.json["trsc_latefee"] == 0.0
    assert r.json["trsc_returndate"] is not None

    assert client.get("/api/instruments/GTR-001").json["inst_status"] == "Ready"

    r = client.post("/api/payments/mark-as-paid", json={"transactionId": trsc_id}, headers=headers)
    assert r.status_code == 409


def test_mark_as_paid_late(client):
    headers = _signup(client)
    r = _book_room(client, headers, start="2020-01-01T10:00:00Z", end="2020-01-01T12:00:00Z")
    trsc_id = r.json["transactionId"]

    r = client.post("/api/payments/mark-as-paid", json={"transactionId": trsc_id}, headers=headers)
    assert r.status_code == 200
    fee = r.json["trsc_latefee"]
    assert fee > 0
    assert fee % 10000 == 0


def test_mark_as_paid_late_fee_per_started_day(app, client):
    headers = _signup(client)
    trsc_id = _book_room(client, headers).json["transactionId"]

    with session_scope(app) as s:
        trsc = s.get(RentalTransaction, trsc_id)
        returned = trsc.trsc_rentend + timedelta(days=1, hours=1)
        mark_as_paid(s, trsc, rate_per_day=Decimal("10000"), now=returned)
        assert trsc.trsc_latefee == Decimal("20000")
        assert trsc.trsc_returndate == returned


def test_other_student_cannot_pay_or_view(client):
    headers = _signup(client, stdn_id="22009999", email="other@example.com")
    trsc_id = _book_room(client, headers).json["transactionId"]
    client.post("/auth/logout")

    headers = _signup(client)
    r = client.post("/api/payments/mark-as-paid", json={"transactionId": trsc_id}, headers=headers)
    assert r.status_code == 403
    assert client.get(f"/api/rentals/{trsc_id}").status_code == 403

    client.post("/auth/logout")
    _login(client, "staff@example.com")
    r = client.get(f"/api/rentals/{trsc_id}")
    assert r.status_code == 200
    assert r.json["Student_stdn_id"] == "22009999"


def test_late_fee_preview(client):
    headers = _signup(client)
    trsc_id = _book_room(client, headers, start="2020-01-01T10:00:00Z", end="2020-01-01T12:00:00Z").json["transactionId"]

    r = client.get(f"/api/rentals/{trsc_id}/late-fee?rate=5000")
    assert r.status_code == 200
    assert r.json["late_days"] > 0
    assert r.json["rate_per_day"] == 5000.0
    assert r.json["late_fee"] == r.json["late_days"] * 5000.0

    r = client.get(f"/api/rentals/{trsc_id}/late-fee?rate=-1")
    assert r.status_code == 400


def test_late_fee_preview_not_due(client):
    headers = _signup(client)
    trsc_id = _book_room(client, headers).json["transactionId"]
    r = client.get(f"/api/rentals/{trsc_id}/late-fee")
    assert r.json["late_days"] == 0
    assert r.json["late_fee"] == 0.0


# ---------- History ----------
def test_rental_history(client):
    headers = _signup(client)
    room_id = _book_room(client, headers).json["transactionId"]
    inst_id = _book_instrument(client, headers).json["transactionId"]

    r = client.get("/api/rental-history")
    assert r.status_code == 200
    assert {t["trsc_id"] for t in r.json["rentals"]} == {room_id, inst_id}
    assert [t["trsc_id"] for t in r.json["rooms"]] == [room_id]
    assert [t["trsc_id"] for t in r.json["instruments"]] == [inst_id]

    dates = [datetime.fromisoformat(t["trsc_transactiondate"]) for t in r.json["rentals"]]
    assert dates == sorted(dates, reverse=True)


def test_rental_history_is_per_student(client):
    headers = _signup(client, stdn_id="22009999", email="other@example.com")
    _book_room(client, headers)
    client.post("/auth/logout")

    _signup(client)
    r = client.get("/api/rental-history")
    assert r.json == {"rentals": [], "rooms": [], "instruments": []}
