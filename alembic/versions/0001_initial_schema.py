"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 12:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("identity", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("last_active", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_identity", "users", ["identity"], unique=True)

    op.create_table(
        "devices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("hwid", sa.String(length=400), nullable=False),
        sa.Column("fingerprint", sa.String(length=800), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("browser_info", sa.Text(), nullable=True),
        sa.Column("os_info", sa.String(length=100), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("aes_key", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("approved_by", sa.String(length=100), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "hwid", "fingerprint", name="uq_devices_owner_hwid_fingerprint"),
    )
    op.create_index("ix_devices_id", "devices", ["id"])
    op.create_index("ix_devices_owner_id", "devices", ["owner_id"])
    op.create_index("ix_devices_status", "devices", ["status"])

    op.create_table(
        "device_approval_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("device_id", sa.Integer(), nullable=False),
        sa.Column("requested_identity", sa.String(length=255), nullable=False),
        sa.Column("request_type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("processed_by", sa.String(length=100), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["device_id"], ["devices.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_device_approval_requests_id", "device_approval_requests", ["id"])
    op.create_index("ix_device_approval_requests_device_id", "device_approval_requests", ["device_id"])
    op.create_index("ix_device_approval_requests_status", "device_approval_requests", ["status"])

    op.create_table(
        "script_versions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("version", sa.String(length=50), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("checksum", sa.String(length=64), nullable=False),
        sa.Column("update_notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_script_versions_id", "script_versions", ["id"])
    op.create_index("ix_script_versions_is_active", "script_versions", ["is_active"])

    op.create_table(
        "system_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("value_type", sa.String(length=20), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_system_settings_id", "system_settings", ["id"])
    op.create_index("ix_system_settings_key", "system_settings", ["key"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_system_settings_key", table_name="system_settings")
    op.drop_index("ix_system_settings_id", table_name="system_settings")
    op.drop_table("system_settings")

    op.drop_index("ix_script_versions_is_active", table_name="script_versions")
    op.drop_index("ix_script_versions_id", table_name="script_versions")
    op.drop_table("script_versions")

    op.drop_index("ix_device_approval_requests_status", table_name="device_approval_requests")
    op.drop_index("ix_device_approval_requests_device_id", table_name="device_approval_requests")
    op.drop_index("ix_device_approval_requests_id", table_name="device_approval_requests")
    op.drop_table("device_approval_requests")

    op.drop_index("ix_devices_status", table_name="devices")
    op.drop_index("ix_devices_owner_id", table_name="devices")
    op.drop_index("ix_devices_id", table_name="devices")
    op.drop_table("devices")

    op.drop_index("ix_users_identity", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
