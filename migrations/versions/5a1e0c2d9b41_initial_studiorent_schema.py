"""initial studiorent schema

Revision ID: 5a1e0c2d9b41
Revises:
Create Date: 2026-10-18 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5a1e0c2d9b41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create auth, catalog, people, membership, rental and audit tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(128), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("client_ip", sa.String(64), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_user_email", sa.String(320), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("scope_key", sa.String(64), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
    )
    op.create_index("idx_audit_scope", "audit_events", ["scope_key"])
    op.create_index("idx_audit_entity", "audit_events", ["entity_type", "entity_id"])

    op.create_table(
        "students",
        sa.Column("stdn_id", sa.String(10), primary_key=True),
        sa.Column("stdn_name", sa.String(255), nullable=False),
        sa.Column("stdn_telpnum", sa.String(32), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "employees",
        sa.Column("empl_nik", sa.String(32), primary_key=True),
        sa.Column("empl_name", sa.String(255), nullable=False),
        sa.Column("empl_email", sa.String(320), nullable=True),
        sa.Column("empl_gender", sa.String(16), nullable=True),
        sa.Column("empl_telpnum", sa.String(32), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "instruments",
        sa.Column("inst_id", sa.String(32), primary_key=True),
        sa.Column("inst_name", sa.String(255), nullable=False),
        sa.Column("inst_type", sa.String(128), nullable=False),
        sa.Column("inst_rentalprice", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("inst_status", sa.String(32), nullable=False, server_default="Ready"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("idx_instruments_status", "instruments", ["inst_status"])
    op.create_index("idx_instruments_name", "instruments", ["inst_name"])

    op.create_table(
        "rooms",
        sa.Column("room_id", sa.String(32), primary_key=True),
        sa.Column("room_name", sa.String(255), nullable=False),
        sa.Column("room_size", sa.String(64), nullable=False),
        sa.Column("room_rentrate", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("idx_rooms_name", "rooms", ["room_name"])

    op.create_table(
        "memberships",
        sa.Column("mmbr_id", sa.String(36), primary_key=True),
        sa.Column(
            "student_id",
            sa.String(10),
            sa.ForeignKey("students.stdn_id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("mmbr_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mmbr_creationdate", sa.Date(), nullable=False),
        sa.Column("mmbr_expirydate", sa.Date(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("mmbr_points >= 0", name="ck_membership_points_nonnegative"),
    )

    op.create_table(
        "rental_transactions",
        sa.Column("trsc_id", sa.String(40), primary_key=True),
        sa.Column("trsc_transactiondate", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("trsc_paymentmethod", sa.String(32), nullable=False, server_default="Card"),
        sa.Column("trsc_rentstart", sa.DateTime(), nullable=False),
        sa.Column("trsc_rentend", sa.DateTime(), nullable=False),
        sa.Column("trsc_returndate", sa.DateTime(), nullable=True),
        sa.Column("trsc_totalprice", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("trsc_latefee", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="Unpaid"),
        sa.Column("student_id", sa.String(10), sa.ForeignKey("students.stdn_id", ondelete="RESTRICT"), nullable=False),
        sa.Column("employee_nik", sa.String(32), sa.ForeignKey("employees.empl_nik", ondelete="RESTRICT"), nullable=False),
        sa.Column("room_id", sa.String(32), sa.ForeignKey("rooms.room_id", ondelete="RESTRICT"), nullable=True),
        sa.CheckConstraint("trsc_rentstart < trsc_rentend", name="ck_rental_valid_period"),
    )
    op.create_index("idx_rental_room_period", "rental_transactions", ["room_id", "trsc_rentstart", "trsc_rentend"])
    op.create_index("idx_rental_student", "rental_transactions", ["student_id"])

    op.create_table(
        "transaction_instruments",
        sa.Column(
            "transaction_id",
            sa.String(40),
            sa.ForeignKey("rental_transactions.trsc_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "instrument_id",
            sa.String(32),
            sa.ForeignKey("instruments.inst_id", ondelete="RESTRICT"),
            primary_key=True,
        ),
    )


def downgrade() -> None:
    op.drop_table("transaction_instruments")
    op.drop_index("idx_rental_student", table_name="rental_transactions")
    op.drop_index("idx_rental_room_period", table_name="rental_transactions")
    op.drop_table("rental_transactions")
    op.drop_table("memberships")
    op.drop_index("idx_rooms_name", table_name="rooms")
    op.drop_table("rooms")
    op.drop_index("idx_instruments_name", table_name="instruments")
    op.drop_index("idx_instruments_status", table_name="instruments")
    op.drop_table("instruments")
    op.drop_table("employees")
    op.drop_table("students")
    op.drop_index("idx_audit_entity", table_name="audit_events")
    op.drop_index("idx_audit_scope", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("role_permissions")
    op.drop_table("user_roles")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users")
