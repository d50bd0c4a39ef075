# src/zonetest/core/jobs/schema.py
"""SQLAlchemy table definitions for the job store.

Uses SQLAlchemy Core (not ORM) for explicit control over queries
and compatibility with multiple database backends.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
)

# Shared metadata for all tables
metadata = MetaData()

# === Batches ===

batches_table = Table(
    "batches",
    metadata,
    Column("batch_id", String(64), primary_key=True),
    Column("template_json", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

# === Jobs ===

jobs_table = Table(
    "jobs",
    metadata,
    Column("job_id", Integer, primary_key=True, autoincrement=True),
    # Content hash of the canonical parameters - the deduplication key
    Column("identity", String(16), nullable=False, unique=True),
    Column("domain", String(255), nullable=False),
    Column("params_json", Text, nullable=False),  # canonical form
    Column("raw_params_json", Text, nullable=False),  # verbatim submission
    # NULL only for historical rows not yet back-filled
    Column("delegation_class", String(16)),
    Column("state", String(16), nullable=False),
    Column("progress", Integer),
    Column("submitted_at", DateTime(timezone=True), nullable=False),
    Column("started_at", DateTime(timezone=True)),
    Column("finished_at", DateTime(timezone=True)),
    Column("result_json", Text),  # opaque worker payload, set on terminal transition
    Column("batch_id", String(64), ForeignKey("batches.batch_id")),
    Column("canonical_version", String(64), nullable=False),
    CheckConstraint("state IN ('queued', 'running', 'completed', 'failed')", name="ck_jobs_state"),
    CheckConstraint(
        "delegation_class IS NULL OR delegation_class IN ('delegated', 'undelegated')",
        name="ck_jobs_delegation_class",
    ),
    CheckConstraint("progress IS NULL OR (progress >= 0 AND progress <= 100)", name="ck_jobs_progress"),
)

Index("ix_jobs_domain_submitted", jobs_table.c.domain, jobs_table.c.submitted_at)
Index("ix_jobs_delegation_class", jobs_table.c.delegation_class)
Index("ix_jobs_state_job_id", jobs_table.c.state, jobs_table.c.job_id)

# === Batch membership ===
# A job can belong to several batches when batches reuse existing jobs;
# jobs.batch_id records only the batch that created the job.

batch_members_table = Table(
    "batch_members",
    metadata,
    Column("batch_id", String(64), ForeignKey("batches.batch_id"), nullable=False),
    Column("job_id", Integer, ForeignKey("jobs.job_id"), nullable=False),
    Column("ordinal", Integer, nullable=False),
    PrimaryKeyConstraint("batch_id", "ordinal"),
)

Index("ix_batch_members_job_id", batch_members_table.c.job_id)
