"""Production stations, jobs, job logs and QC checkpoints.

Revision ID: 0001
Revises:
Create Date: 2026-03-02
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Stations ─────────────────────────────────────────────
    op.create_table(
        "production_stations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(30), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("department", sa.String(50)),
        sa.Column("work_type_codes", sa.JSON()),
        sa.Column("status", sa.String(20)),
        sa.Column("capacity_per_day", sa.Integer()),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_index("ix_production_stations_code", "production_stations", ["code"], unique=True)
    op.create_index("ix_production_stations_status", "production_stations", ["status"])

    # ── Jobs ─────────────────────────────────────────────────
    op.create_table(
        "production_jobs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("job_number", sa.String(50), nullable=False),
        sa.Column("order_id", sa.String(36)),
        sa.Column("order_number", sa.String(50)),
        sa.Column("customer_name", sa.String(200)),
        sa.Column("work_type_code", sa.String(50), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("production_notes", sa.Text()),
        sa.Column("status", sa.String(30)),
        sa.Column("priority", sa.Integer()),
        sa.Column("ordered_qty", sa.Integer(), nullable=False),
        sa.Column("produced_qty", sa.Integer()),
        sa.Column("passed_qty", sa.Integer()),
        sa.Column("failed_qty", sa.Integer()),
        sa.Column("rework_qty", sa.Integer()),
        sa.Column("station_id", sa.String(36), sa.ForeignKey("production_stations.id")),
        sa.Column("assigned_user_id", sa.String(36)),
        sa.Column("assigned_at", sa.DateTime()),
        sa.Column("due_date", sa.Date()),
        sa.Column("started_at", sa.DateTime()),
        sa.Column("completed_at", sa.DateTime()),
        sa.Column("qc_notes", sa.Text()),
        sa.Column("qc_by", sa.String(36)),
        sa.Column("qc_at", sa.DateTime()),
        sa.Column("qc_rounds", sa.Integer()),
        sa.Column("is_rework", sa.Boolean()),
        sa.Column("rework_count", sa.Integer()),
        sa.Column("original_job_id", sa.String(36), sa.ForeignKey("production_jobs.id")),
        sa.Column("rework_reason", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
        sa.Column("version_id", sa.Integer(), nullable=False),
    )
    op.create_index("ix_production_jobs_job_number", "production_jobs", ["job_number"], unique=True)
    op.create_index("ix_production_jobs_order_id", "production_jobs", ["order_id"])
    op.create_index("ix_production_jobs_work_type_code", "production_jobs", ["work_type_code"])
    op.create_index("ix_production_jobs_status", "production_jobs", ["status"])
    op.create_index("ix_production_jobs_priority", "production_jobs", ["priority"])
    op.create_index("ix_production_jobs_station_id", "production_jobs", ["station_id"])
    op.create_index("ix_production_jobs_due_date", "production_jobs", ["due_date"])
    op.create_index("ix_production_jobs_original_job_id", "production_jobs", ["original_job_id"])
    op.create_index("ix_production_jobs_created_at", "production_jobs", ["created_at"])

    # ── Job event log (append-only) ──────────────────────────
    op.create_table(
        "production_job_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("job_id", sa.String(36), sa.ForeignKey("production_jobs.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("from_status", sa.String(30)),
        sa.Column("to_status", sa.String(30)),
        sa.Column("produced_qty", sa.Integer()),
        sa.Column("notes", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("performed_by", sa.String(36)),
        sa.Column("performed_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("job_id", "sequence", name="uq_job_log_sequence"),
    )
    op.create_index("ix_production_job_logs_job_id", "production_job_logs", ["job_id"])
    op.create_index("ix_production_job_logs_action", "production_job_logs", ["action"])
    op.create_index("ix_production_job_logs_performed_at", "production_job_logs", ["performed_at"])

    # ── QC checkpoints ───────────────────────────────────────
    op.create_table(
        "qc_checkpoint_templates",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("work_type_code", sa.String(50), nullable=False),
        sa.Column("checkpoint_name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("is_required", sa.Boolean()),
        sa.Column("sort_order", sa.Integer()),
        sa.Column("is_active", sa.Boolean()),
        sa.Column("created_at", sa.DateTime()),
        sa.UniqueConstraint("work_type_code", "checkpoint_name", name="uq_qc_template_name"),
    )
    op.create_index(
        "ix_qc_checkpoint_templates_work_type_code", "qc_checkpoint_templates", ["work_type_code"]
    )

    op.create_table(
        "qc_checkpoint_results",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("job_id", sa.String(36), sa.ForeignKey("production_jobs.id"), nullable=False),
        sa.Column("qc_round", sa.Integer(), nullable=False),
        sa.Column("checkpoint_name", sa.String(100), nullable=False),
        sa.Column("checkpoint_order", sa.Integer()),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("checked_by", sa.String(36)),
        sa.Column("checked_at", sa.DateTime()),
    )
    op.create_index("ix_qc_checkpoint_results_job_id", "qc_checkpoint_results", ["job_id"])


def downgrade() -> None:
    op.drop_table("qc_checkpoint_results")
    op.drop_table("qc_checkpoint_templates")
    op.drop_table("production_job_logs")
    op.drop_table("production_jobs")
    op.drop_table("production_stations")
