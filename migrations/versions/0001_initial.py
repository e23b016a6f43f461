"""patients, appointments, report versions and billing

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "patients",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("patient_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("patient_type", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("total_sessions_required", sa.Integer(), nullable=True),
        sa.Column("remaining_sessions", sa.Integer(), nullable=True),
        sa.Column("report_data", sa.JSON(), nullable=False),
        sa.Column("row_version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "total_sessions_required IS NULL OR total_sessions_required >= 0",
            name="non_negative_total_sessions",
        ),
        sa.CheckConstraint(
            "remaining_sessions IS NULL OR remaining_sessions >= 0",
            name="non_negative_remaining_sessions",
        ),
    )
    op.create_index("ix_patients_id", "patients", ["id"], unique=True)
    op.create_index("ix_patients_patient_id", "patients", ["patient_id"], unique=True)
    op.create_index("ix_patients_name", "patients", ["name"])
    op.create_index("ix_patients_patient_type", "patients", ["patient_type"])
    op.create_index("ix_patients_status", "patients", ["status"])

    op.create_table(
        "appointments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("appointment_id", sa.String(64), nullable=False),
        sa.Column("patient_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(5), nullable=True),
        sa.Column("doctor", sa.String(255), nullable=True),
        sa.Column("billing_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("billing_date", sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_appointments_id", "appointments", ["id"], unique=True)
    op.create_index(
        "ix_appointments_appointment_id", "appointments", ["appointment_id"], unique=True
    )
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_status", "appointments", ["status"])
    op.create_index("ix_appointments_date", "appointments", ["date"])
    op.create_index(
        "idx_appointment_patient_status", "appointments", ["patient_id", "status"]
    )

    op.create_table(
        "report_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("patient_id", sa.String(64), nullable=False),
        sa.Column("patient_name", sa.String(255), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("report_data", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.Column("restored_from", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_report_versions_id", "report_versions", ["id"], unique=True)
    op.create_index("ix_report_versions_patient_id", "report_versions", ["patient_id"])
    op.create_index(
        "idx_report_version_patient_version",
        "report_versions",
        ["patient_id", "version"],
    )

    op.create_table(
        "billing_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("billing_id", sa.String(80), nullable=False),
        sa.Column("appointment_id", sa.String(64), nullable=False),
        sa.Column("patient_id", sa.String(64), nullable=False),
        sa.Column("patient_name", sa.String(255), nullable=True),
        sa.Column("doctor", sa.String(255), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("billing_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("payment_mode", sa.String(30), nullable=True),
        sa.Column("created_by_name", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_billing_records_id", "billing_records", ["id"], unique=True)
    op.create_index("ix_billing_records_billing_id", "billing_records", ["billing_id"])
    op.create_index(
        "ix_billing_records_appointment_id",
        "billing_records",
        ["appointment_id"],
        unique=True,
    )
    op.create_index("ix_billing_records_patient_id", "billing_records", ["patient_id"])
    op.create_index("ix_billing_records_status", "billing_records", ["status"])


def downgrade() -> None:
    op.drop_table("billing_records")
    op.drop_table("report_versions")
    op.drop_table("appointments")
    op.drop_table("patients")
