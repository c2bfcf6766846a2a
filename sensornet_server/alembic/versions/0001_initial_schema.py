"""initial schema: telemetry records and readings, maintenance tickets

Revision ID: 0001
Revises:
Create Date: 2025-07-01 10:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "telemetry_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("device_id", sa.String(), nullable=False),
        sa.Column("sensor_type", sa.String(), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_telemetry_records_received_at", "telemetry_records", ["received_at"])
    op.create_index("ix_telemetry_records_device_received", "telemetry_records", ["device_id", "received_at"])
    op.create_index(
        "ix_telemetry_records_device_sensor_received",
        "telemetry_records",
        ["device_id", "sensor_type", "received_at"],
    )

    op.create_table(
        "telemetry_readings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "record_id",
            sa.Integer(),
            sa.ForeignKey("telemetry_records.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("metric", sa.String(), nullable=False),
        sa.Column("value_number", sa.Float(), nullable=True),
        sa.Column("value_bool", sa.Boolean(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_telemetry_readings_record_id", "telemetry_readings", ["record_id"])
    op.create_index("ix_telemetry_readings_metric", "telemetry_readings", ["metric"])

    op.create_table(
        "maintenance_tickets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("responsible_id", sa.String(), nullable=False),
        sa.Column("device_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("damage_image", sa.String(), nullable=True),
        sa.Column("approved_by", sa.String(), nullable=True),
        sa.Column("cancel_reason", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_maintenance_tickets_responsible_id", "maintenance_tickets", ["responsible_id"])
    op.create_index("ix_maintenance_tickets_device_id", "maintenance_tickets", ["device_id"])
    op.create_index("ix_maintenance_tickets_status", "maintenance_tickets", ["status"])

    op.create_table(
        "ticket_status_changes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "ticket_id",
            sa.Integer(),
            sa.ForeignKey("maintenance_tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(20), nullable=False),
        sa.Column("to_status", sa.String(20), nullable=False),
        sa.Column("changed_by", sa.String(), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
    )
    op.create_index("ix_ticket_status_changes_ticket_id", "ticket_status_changes", ["ticket_id"])


def downgrade() -> None:
    op.drop_table("ticket_status_changes")
    op.drop_table("maintenance_tickets")
    op.drop_table("telemetry_readings")
    op.drop_table("telemetry_records")
