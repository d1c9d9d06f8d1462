"""
Idempotent seed: permissions, roles, the admin account, the default
transaction handler (employee) and, optionally, a sample catalog.

Usage:
  python scripts/init_db.py [--sample-catalog]
"""
import argparse
import os
import sys
from decimal import Decimal
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.studiorent.models import Base, Employee, Instrument, Permission, Role, Room, User  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402

PERMISSIONS = (
    ("catalog.edit", "Catalog: edit instruments and rooms"),
    ("employees.manage", "Employees: view and create"),
)

# role key -> (display name, permission keys)
ROLES = {
    "student": ("Student", ()),
    "staff": ("Staff", ("catalog.edit",)),
    "admin": ("Administrator", ("catalog.edit", "employees.manage")),
}

SAMPLE_INSTRUMENTS = (
    ("GTR-001", "Yamaha C40 Classical Guitar", "Guitar", Decimal("15000")),
    ("KEY-001", "Roland FP-30X Digital Piano", "Keyboard", Decimal("40000")),
    ("VLN-001", "Stentor Student Violin", "Violin", Decimal("20000")),
    ("DRM-001", "Pearl Roadshow Drum Kit", "Drums", Decimal("50000")),
)

SAMPLE_ROOMS = (
    ("R-101", "Practice Room A", "Small", Decimal("50000")),
    ("R-102", "Practice Room B", "Small", Decimal("50000")),
    ("R-201", "Band Studio", "Large", Decimal("150000")),
)


def seed_only(*, database_url: str | None = None, sample_catalog: bool = False) -> None:
    """
    Seed permissions/roles/admin/default employee in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@studiorent.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    employee_nik = (os.environ.get("DEFAULT_EMPLOYEE_NIK") or "3170000000000001").strip()
    employee_name = (os.environ.get("DEFAULT_EMPLOYEE_NAME") or "Front Desk").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///studiorent.db").strip()

    with script_session(db_url) as s:
        perms: dict[str, Permission] = {}
        for key, name in PERMISSIONS:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            perms[key] = p

        roles: dict[str, Role] = {}
        for key, (name, perm_keys) in ROLES.items():
            role = s.query(Role).filter(Role.key == key).one_or_none()
            if not role:
                role = Role(key=key, name=name)
                s.add(role)
            for pk in perm_keys:
                if perms[pk] not in role.permissions:
                    role.permissions.append(perms[pk])
            roles[key] = role

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)
        if roles["admin"] not in user.roles:
            user.roles.append(roles["admin"])

        if s.get(Employee, employee_nik) is None:
            s.add(Employee(empl_nik=employee_nik, empl_name=employee_name))

        if sample_catalog:
            for inst_id, name, kind, price in SAMPLE_INSTRUMENTS:
                if s.get(Instrument, inst_id) is None:
                    s.add(Instrument(inst_id=inst_id, inst_name=name, inst_type=kind, inst_rentalprice=price, inst_status="Ready"))
            for room_id, name, size, rate in SAMPLE_ROOMS:
                if s.get(Room, room_id) is None:
                    s.add(Room(room_id=room_id, room_name=name, room_size=size, room_rentrate=rate))

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def create_schema(database_url: str) -> None:
    """Create all tables directly (local dev without alembic)."""
    from scripts._db_utils import create_script_engine

    engine = create_script_engine(database_url)
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--sample-catalog", action="store_true", help="Also insert demo instruments and rooms")
    parser.add_argument("--create-schema", action="store_true", help="Create tables without alembic (local dev)")
    args = parser.parse_args()

    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///studiorent.db").strip()
    if args.create_schema:
        create_schema(db_url)
    seed_only(database_url=db_url, sample_catalog=args.sample_catalog)


if __name__ == "__main__":
    main()
