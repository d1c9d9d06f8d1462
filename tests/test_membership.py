"""Tests for membership registration."""
from datetime import date

import pytest
from werkzeug.security import generate_password_hash

from app.studiorent import create_app
from app.studiorent import auth as auth_module
from app.studiorent.db import session_scope
from app.studiorent.models import Base, Role, User
from app.studiorent.modules.membership.service import add_years


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    auth_module._login_attempts.clear()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        r = Role(key="staff", name="Staff")
        u = User(email="staff@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        s.add_all([r, u])

    return app.test_client()


def _signup(client):
    r = client.post(
        "/auth/signup",
        json={
            "email": "ayu@example.com",
            "password": "secret1",
            "stdn_id": "22001234",
            "stdn_name": "Ayu Lestari",
            "stdn_telpnum": "081234567890",
        },
    )
    assert r.status_code == 201
    return {"X-CSRF-Token": r.json["csrf_token"]}


def test_membership_absent_by_default(client):
    _signup(client)
    r = client.get("/api/membership")
    assert r.status_code == 200
    assert r.json == {"membership": None}


def test_create_membership(client):
    headers = _signup(client)
    r = client.post("/api/membership", headers=headers)
    assert r.status_code == 201
    assert r.json["message"] == "Membership created successfully!"

    m = r.json["membership"]
    today = date.today()
    assert m["mmbr_points"] == 0
    assert m["Student_stdn_id"] == "22001234"
    assert m["mmbr_creationdate"] == today.isoformat()
    assert m["mmbr_expirydate"] == add_years(today, 1).isoformat()

    r = client.get("/api/profile")
    assert r.json["membership"]["mmbr_id"] == m["mmbr_id"]


def test_membership_only_once(client):
    headers = _signup(client)
    assert client.post("/api/membership", headers=headers).status_code == 201
    r = client.post("/api/membership", headers=headers)
    assert r.status_code == 409
    assert r.json["error"] == "You already have a membership."


def test_membership_term_from_config(monkeypatch, client):
    monkeypatch.setenv("MEMBERSHIP_TERM_YEARS", "2")
    app = create_app()
    c = app.test_client()
    headers = _signup(c)
    r = c.post("/api/membership", headers=headers)
    assert r.json["membership"]["mmbr_expirydate"] == add_years(date.today(), 2).isoformat()


def test_membership_needs_student_profile(client):
    r = client.post("/auth/login", json={"email": "staff@example.com", "password": "pw"})
    headers = {"X-CSRF-Token": r.json["csrf_token"]}
    r = client.post("/api/membership", headers=headers)
    assert r.status_code == 403
    assert client.get("/api/profile").status_code == 404


def test_membership_requires_login(client):
    assert client.get("/api/membership").status_code == 401


class TestAddYears:
    def test_regular_date(self):
        assert add_years(date(2025, 3, 14), 1) == date(2026, 3, 14)

    def test_leap_day(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)
