"""Add estimated_hours to production jobs for completion estimates.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("production_jobs", sa.Column("estimated_hours", sa.Float()))


def downgrade() -> None:
    with op.batch_alter_table("production_jobs") as batch:
        batch.drop_column("estimated_hours")
