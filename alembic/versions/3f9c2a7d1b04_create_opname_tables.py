"""Create users, stock units and opname tables

Revision ID: 3f9c2a7d1b04
Revises:
Create Date: 2026-10-18 09:12:41.318204

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9c2a7d1b04"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="admin"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "stock_units",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("imei", sa.String(length=32), nullable=False),
        sa.Column("product_label", sa.String(length=255), nullable=True),
        sa.Column("selling_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("cost_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("stock_status", sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_stock_units_id"), "stock_units", ["id"], unique=False)
    op.create_index(op.f("ix_stock_units_imei"), "stock_units", ["imei"], unique=True)
    op.create_index(
        op.f("ix_stock_units_stock_status"), "stock_units", ["stock_status"], unique=False
    )

    op.create_table(
        "opname_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_type", sa.String(length=20), nullable=False),
        sa.Column("session_status", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("total_expected", sa.Integer(), nullable=False),
        sa.Column("total_scanned", sa.Integer(), nullable=False),
        sa.Column("total_match", sa.Integer(), nullable=False),
        sa.Column("total_missing", sa.Integer(), nullable=False),
        sa.Column("total_unregistered", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["completed_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["approved_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_opname_sessions_id"), "opname_sessions", ["id"], unique=False)
    op.create_index(
        op.f("ix_opname_sessions_session_status"),
        "opname_sessions",
        ["session_status"],
        unique=False,
    )
    op.create_index(
        op.f("ix_opname_sessions_started_at"), "opname_sessions", ["started_at"], unique=False
    )

    op.create_table(
        "opname_session_assignments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("admin_id", sa.Integer(), nullable=False),
        sa.Column("assigned_by", sa.Integer(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["opname_sessions.id"]),
        sa.ForeignKeyConstraint(["admin_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["assigned_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "admin_id", name="uq_opname_assignment_session_admin"),
    )
    op.create_index(
        op.f("ix_opname_session_assignments_id"), "opname_session_assignments", ["id"]
    )
    op.create_index(
        op.f("ix_opname_session_assignments_session_id"),
        "opname_session_assignments",
        ["session_id"],
    )
    op.create_index(
        op.f("ix_opname_session_assignments_admin_id"),
        "opname_session_assignments",
        ["admin_id"],
    )

    op.create_table(
        "opname_snapshot_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("unit_id", sa.Integer(), nullable=False),
        sa.Column("imei", sa.String(length=32), nullable=False),
        sa.Column("product_label", sa.String(length=255), nullable=True),
        sa.Column("selling_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("cost_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("stock_status", sa.String(length=20), nullable=False),
        sa.Column("scan_result", sa.String(length=20), nullable=False),
        sa.Column("action_taken", sa.String(length=30), nullable=True),
        sa.Column("action_notes", sa.Text(), nullable=True),
        sa.Column("sold_reference_id", sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(["session_id"], ["opname_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "imei", name="uq_opname_snapshot_session_imei"),
    )
    op.create_index(op.f("ix_opname_snapshot_items_id"), "opname_snapshot_items", ["id"])
    op.create_index(
        op.f("ix_opname_snapshot_items_session_id"), "opname_snapshot_items", ["session_id"]
    )
    op.create_index(
        op.f("ix_opname_snapshot_items_unit_id"), "opname_snapshot_items", ["unit_id"]
    )

    op.create_table(
        "opname_scanned_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("imei", sa.String(length=32), nullable=False),
        sa.Column("scan_result", sa.String(length=20), nullable=False),
        sa.Column("scanned_by", sa.Integer(), nullable=True),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("action_taken", sa.String(length=30), nullable=True),
        sa.Column("action_notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["session_id"], ["opname_sessions.id"]),
        sa.ForeignKeyConstraint(["scanned_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "imei", name="uq_opname_scanned_session_imei"),
    )
    op.create_index(op.f("ix_opname_scanned_items_id"), "opname_scanned_items", ["id"])
    op.create_index(
        op.f("ix_opname_scanned_items_session_id"), "opname_scanned_items", ["session_id"]
    )


def downgrade() -> None:
    op.drop_table("opname_scanned_items")
    op.drop_table("opname_snapshot_items")
    op.drop_table("opname_session_assignments")
    op.drop_table("opname_sessions")
    op.drop_table("stock_units")
    op.drop_table("users")
