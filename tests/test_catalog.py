"""Tests for the instrument and room catalog."""
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from app.studiorent import create_app
from app.studiorent import auth as auth_module
from app.studiorent.db import session_scope
from app.studiorent.models import AuditEvent, Base, Instrument, Permission, Role, Room, User


def _seed_catalog(s):
    s.add_all(
        [
            Instrument(inst_id="GTR-001", inst_name="Acoustic Guitar", inst_type="Guitar", inst_rentalprice=Decimal("15000")),
            Instrument(inst_id="KEY-001", inst_name="Digital Piano", inst_type="Keyboard", inst_rentalprice=Decimal("40000")),
            Instrument(inst_id="VLN-001", inst_name="Student Violin", inst_type="Violin", inst_rentalprice=Decimal("20000")),
            Instrument(
                inst_id="DRM-001",
                inst_name="Drum Kit",
                inst_type="Drums",
                inst_rentalprice=Decimal("50000"),
                inst_status="Maintenance",
            ),
            Room(room_id="R-101", room_name="Practice Room A", room_size="Small", room_rentrate=Decimal("50000")),
            Room(room_id="R-201", room_name="Band Studio", room_size="Large", room_rentrate=Decimal("150000")),
        ]
    )


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    auth_module._login_attempts.clear()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        p = Permission(key="catalog.edit", name="Catalog: edit instruments and rooms")
        staff = Role(key="staff", name="Staff")
        staff.permissions.append(p)
        student = Role(key="student", name="Student")
        u = User(email="staff@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(staff)
        v = User(email="student@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        v.roles.append(student)
        s.add_all([p, staff, student, u, v])
        _seed_catalog(s)

    client = app.test_client()
    return client


def _login(client, email):
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


def test_list_instruments_only_ready(client):
    r = client.get("/api/instruments")
    assert r.status_code == 200
    ids = [i["inst_id"] for i in r.json["instruments"]]
    assert "DRM-001" not in ids
    assert ids == ["GTR-001", "KEY-001", "VLN-001"]


def test_list_instruments_all_statuses(client):
    r = client.get("/api/instruments?status=all")
    ids = {i["inst_id"] for i in r.json["instruments"]}
    assert "DRM-001" in ids


def test_search_matches_name_or_type(client):
    r = client.get("/api/instruments?q=piano")
    assert [i["inst_id"] for i in r.json["instruments"]] == ["KEY-001"]

    r = client.get("/api/instruments?q=violin")
    assert [i["inst_id"] for i in r.json["instruments"]] == ["VLN-001"]


def test_featured_limited_to_three(client):
    r = client.get("/api/instruments/featured")
    assert r.status_code == 200
    assert len(r.json["instruments"]) == 3
    assert all(i["inst_status"] == "Ready" for i in r.json["instruments"])


def test_instrument_detail_and_missing(client):
    r = client.get("/api/instruments/GTR-001")
    assert r.status_code == 200
    assert r.json["inst_rentalprice"] == 15000.0

    r = client.get("/api/instruments/NOPE")
    assert r.status_code == 404
    assert r.json["error"] == "Instrument not found."


def test_rooms_list_and_detail(client):
    r = client.get("/api/rooms")
    assert [room["room_id"] for room in r.json["rooms"]] == ["R-201", "R-101"]

    r = client.get("/api/rooms/R-101")
    assert r.json["room_rentrate"] == 50000.0

    r = client.get("/api/rooms/R-999")
    assert r.status_code == 404
    assert r.json["error"] == "Room not found."


def test_staff_creates_instrument(client):
    headers = _login(client, "staff@example.com")
    r = client.post(
        "/api/instruments",
        json={"inst_id": "BAS-001", "inst_name": "Bass Guitar", "inst_type": "Guitar", "inst_rentalprice": "25000"},
        headers=headers,
    )
    assert r.status_code == 201
    assert r.json["inst_status"] == "Ready"

    app = client.application
    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "instrument.create").one()
        assert ev.entity_id == "BAS-001"
        assert ev.actor_user_email == "staff@example.com"


def test_create_instrument_validation(client):
    headers = _login(client, "staff@example.com")
    r = client.post("/api/instruments", json={"inst_id": "X-1", "inst_name": "X", "inst_type": "Y"}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "Rental price must be a non-negative number."

    r = client.post(
        "/api/instruments",
        json={"inst_id": "GTR-001", "inst_name": "Dup", "inst_type": "Guitar", "inst_rentalprice": 1},
        headers=headers,
    )
    assert r.status_code == 409


def test_student_cannot_edit_catalog(client):
    headers = _login(client, "student@example.com")
    r = client.post(
        "/api/rooms",
        json={"room_id": "R-301", "room_name": "Studio C", "room_size": "Medium", "room_rentrate": 80000},
        headers=headers,
    )
    assert r.status_code == 403
    assert r.json["error"] == "Missing permission: catalog.edit"


def test_staff_status_change(client):
    headers = _login(client, "staff@example.com")
    r = client.post(
        "/api/instruments/GTR-001/status",
        json={"status": "Maintenance", "reason": "Broken string"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json["inst_status"] == "Maintenance"

    r = client.post("/api/instruments/GTR-001/status", json={"status": "Lost"}, headers=headers)
    assert r.status_code == 400

    r = client.get("/api/instruments")
    assert "GTR-001" not in [i["inst_id"] for i in r.json["instruments"]]


def test_staff_updates_room_rate(client):
    headers = _login(client, "staff@example.com")
    r = client.patch("/api/rooms/R-101", json={"room_rentrate": "60000", "reason": "New rates"}, headers=headers)
    assert r.status_code == 200
    assert r.json["room_rentrate"] == 60000.0
    assert r.json["room_name"] == "Practice Room A"


def test_create_instrument_numeric_fields(client):
    headers = _login(client, "staff@example.com")
    r = client.post(
        "/api/instruments",
        json={"inst_id": 7, "inst_name": 808, "inst_type": "Drum Machine", "inst_rentalprice": 30000},
        headers=headers,
    )
    assert r.status_code == 201
    assert r.json["inst_id"] == "7"
    assert r.json["inst_name"] == "808"

    r = client.post(
        "/api/instruments",
        json={"inst_id": "X-2", "inst_name": "Tuner", "inst_type": "Accessory", "inst_rentalprice": 1, "inst_status": 3},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json["error"].startswith("Invalid status.")


def test_update_room_numeric_name(client):
    headers = _login(client, "staff@example.com")
    r = client.patch("/api/rooms/R-101", json={"room_name": 101, "room_size": 12}, headers=headers)
    assert r.status_code == 200
    assert r.json["room_name"] == "101"
    assert r.json["room_size"] == "12"


def test_status_change_non_string(client):
    headers = _login(client, "staff@example.com")
    r = client.post("/api/instruments/GTR-001/status", json={"status": 1}, headers=headers)
    assert r.status_code == 400
