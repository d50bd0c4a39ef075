"""add_delegation_class_to_jobs

Adds jobs.delegation_class and derives it for every existing job from the
stored raw parameters, using the same classifier as live submissions.
Rows whose parameters cannot be classified keep NULL and are reported;
`zonetest backfill` can be re-run after fixing them.

Revision ID: 7a3e51c0d2b9
Revises:
Create Date: 2026-10-18 09:12:44.000000

"""

from collections.abc import Sequence
from contextlib import nullcontext

import sqlalchemy as sa
from alembic import op

from zonetest.core.config import JobSettings
from zonetest.core.jobs.backfill import run_backfill

# revision identifiers, used by Alembic.
revision: str = "7a3e51c0d2b9"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column("jobs", sa.Column("delegation_class", sa.String(length=16), nullable=True))
    op.create_index("ix_jobs_delegation_class", "jobs", ["delegation_class"])

    bind = op.get_bind()
    # Failures are logged per row by the backfill and do not abort the upgrade
    run_backfill(lambda: nullcontext(bind), JobSettings(), reclassify_all=True)


def downgrade() -> None:
    op.drop_index("ix_jobs_delegation_class", table_name="jobs")
    # Use batch_alter_table for SQLite compatibility (recreates table)
    with op.batch_alter_table("jobs", schema=None) as batch_op:
        batch_op.drop_column("delegation_class")
