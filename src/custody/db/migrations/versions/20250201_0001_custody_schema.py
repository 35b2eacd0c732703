"""Custody ledger schema

Creates the audit log, evidence packages, package content snapshots and
certificates of authenticity. The platform tables they reference (users,
matters, documents, extraction_jobs) are created by the platform itself.

Revision ID: 0001
Revises:
Create Date: 2025-02-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create enum types
    op.execute(
        "CREATE TYPE eventcategory AS ENUM "
        "('authentication', 'authorization', 'data_access', 'admin', 'system', 'evidence_package')"
    )
    op.execute(
        "CREATE TYPE packagetype AS ENUM "
        "('full_evidence', 'audit_only', 'facts_only', 'court_ready')"
    )
    op.execute("CREATE TYPE exportformat AS ENUM ('pdf', 'docx', 'json', 'csv', 'zip')")
    op.execute(
        "CREATE TYPE packagestatus AS ENUM "
        "('draft', 'generated', 'certified', 'delivered', 'filed')"
    )
    op.execute("CREATE TYPE contenttype AS ENUM ('extracted_fact', 'source_document')")

    # Create audit_log table (insert-only)
    op.create_table(
        "audit_log",
        sa.Column("sequence_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column(
            "event_category",
            sa.Enum(name="eventcategory", create_type=False),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True)),
        sa.Column("matter_id", postgresql.UUID(as_uuid=True)),
        sa.Column("document_id", postgresql.UUID(as_uuid=True)),
        sa.Column("extraction_job_id", postgresql.UUID(as_uuid=True)),
        sa.Column("event_data", postgresql.JSONB, server_default="{}"),
        sa.Column("ip_address", sa.String(45), nullable=False, server_default="system"),
        sa.Column("user_agent", sa.String(500), nullable=False, server_default="internal"),
        sa.Column("timestamp", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_audit_matter", "audit_log", ["matter_id", "timestamp"])
    op.create_index("idx_audit_document", "audit_log", ["document_id", "timestamp"])
    op.create_index("idx_audit_user", "audit_log", ["user_id"])
    op.create_index("idx_audit_job", "audit_log", ["extraction_job_id"])
    op.create_index("idx_audit_event_type", "audit_log", ["event_type"])
    op.create_index("idx_audit_timestamp", "audit_log", ["timestamp"])

    # Create evidence_packages table
    op.create_table(
        "evidence_packages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("matter_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("matters.id"), nullable=False),
        sa.Column(
            "extraction_job_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("extraction_jobs.id"),
            nullable=False,
        ),
        sa.Column("package_type", sa.Enum(name="packagetype", create_type=False), nullable=False),
        sa.Column("export_format", sa.Enum(name="exportformat", create_type=False), nullable=False),
        sa.Column(
            "status",
            sa.Enum(name="packagestatus", create_type=False),
            nullable=False,
            server_default="generated",
        ),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("file_hash", sa.String(64), nullable=False),
        sa.Column("included_facts_count", sa.Integer, server_default="0"),
        sa.Column("included_documents_count", sa.Integer, server_default="0"),
        sa.Column("included_audit_entries_count", sa.Integer, server_default="0"),
        sa.Column("included_review_records_count", sa.Integer, server_default="0"),
        sa.Column("metadata", postgresql.JSONB, server_default="{}"),
        sa.Column("certificate_id", postgresql.UUID(as_uuid=True)),
        sa.Column("generated_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("generated_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("locked_at", sa.DateTime),
        sa.Column("locked_by", postgresql.UUID(as_uuid=True)),
        sa.Column("delivered_at", sa.DateTime),
        sa.Column("filed_at", sa.DateTime),
    )
    op.create_index("idx_packages_matter", "evidence_packages", ["matter_id", "generated_at"])

    # Create package_content_snapshots table (insert-only)
    op.create_table(
        "package_content_snapshots",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "package_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("evidence_packages.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("content_type", sa.Enum(name="contenttype", create_type=False), nullable=False),
        sa.Column("content_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("content_snapshot", sa.Text, nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    # Create certificates_of_authenticity table
    op.create_table(
        "certificates_of_authenticity",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "package_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("evidence_packages.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("certificate_number", sa.String(100), nullable=False, unique=True),
        sa.Column("issued_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("issuer_title", sa.String(100), server_default="Attorney"),
        sa.Column("attestation_text", sa.Text, nullable=False),
        sa.Column("chain_of_custody_verified", sa.Boolean, server_default=sa.true()),
        sa.Column("ai_disclosure_included", sa.Boolean, server_default=sa.true()),
        sa.Column("attorney_review_certified", sa.Boolean, server_default=sa.true()),
        sa.Column("issued_at", sa.DateTime, server_default=sa.func.now()),
    )

    # Reject UPDATE and DELETE on insert-only tables
    op.execute(
        """CREATE FUNCTION reject_modification() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION '% is append-only', TG_TABLE_NAME;
        END;
        $$ LANGUAGE plpgsql"""
    )
    for table in ("audit_log", "package_content_snapshots"):
        op.execute(
            f"CREATE TRIGGER {table}_append_only BEFORE UPDATE OR DELETE ON {table} "
            "FOR EACH ROW EXECUTE FUNCTION reject_modification()"
        )


def downgrade() -> None:
    for table in ("package_content_snapshots", "audit_log"):
        op.execute(f"DROP TRIGGER {table}_append_only ON {table}")
    op.execute("DROP FUNCTION reject_modification()")

    # Drop tables in reverse order
    op.drop_table("certificates_of_authenticity")
    op.drop_table("package_content_snapshots")
    op.drop_table("evidence_packages")
    op.drop_table("audit_log")

    op.execute("DROP TYPE contenttype")
    op.execute("DROP TYPE packagestatus")
    op.execute("DROP TYPE exportformat")
    op.execute("DROP TYPE packagetype")
    op.execute("DROP TYPE eventcategory")
