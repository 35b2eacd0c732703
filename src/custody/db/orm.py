"""
SQLAlchemy database models for the custody core.

Tables fall into two groups:
- Platform tables owned by other services (users, matters, documents,
  extractions, reviews, extraction jobs, facts). Declared here so the
  custody store can read them.
- Custody tables (audit_log, evidence_packages, package snapshots,
  certificates). audit_log and package_content_snapshots are insert-only.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from custody.models import ApprovalStatus, ContentType, EventCategory, ExportFormat, PackageStatus, PackageType


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def _enum(enum_cls: type[enum.Enum], name: str) -> SQLEnum:
    """Enum column storing the lowercase member values."""
    return SQLEnum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])


# =============================================================================
# Platform tables
# =============================================================================


class UserModel(Base):
    """Platform user. Attorneys carry a bar number."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    bar_number: Mapped[Optional[str]] = mapped_column(String(50))


class MatterModel(Base):
    """Legal matter."""

    __tablename__ = "matters"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    matter_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    matter_name: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class DocumentModel(Base):
    """Uploaded document with privilege flags."""

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("matters.id"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_hash: Mapped[Optional[str]] = mapped_column(String(64))
    file_size: Mapped[Optional[int]] = mapped_column(Integer)
    document_type: Mapped[Optional[str]] = mapped_column(String(100))
    storage_key: Mapped[Optional[str]] = mapped_column(String(1000))
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))

    # Privilege
    attorney_client_privilege: Mapped[bool] = mapped_column(Boolean, default=False)
    work_product: Mapped[bool] = mapped_column(Boolean, default=False)
    privileged_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("idx_documents_matter", "matter_id", "created_at"),
    )


class ExtractionModel(Base):
    """Structured extraction over a document."""

    __tablename__ = "extractions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False, index=True
    )
    extracted_data: Mapped[dict] = mapped_column(JSONB, default=dict)
    source_citations: Mapped[Optional[list]] = mapped_column(JSONB)
    extracted_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ReviewModel(Base):
    """Attorney review of an extraction."""

    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    extraction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("extractions.id"), nullable=False, index=True
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    field_approvals: Mapped[dict] = mapped_column(JSONB, default=dict)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ExtractionJobModel(Base):
    """AI-assisted fact extraction run."""

    __tablename__ = "extraction_jobs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("matters.id"), nullable=False
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    extraction_status: Mapped[str] = mapped_column(String(50), default="completed")
    model_name: Mapped[Optional[str]] = mapped_column(String(100))
    prompt_template_id: Mapped[Optional[str]] = mapped_column(String(100))
    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)


class ExtractedFactModel(Base):
    """Fact produced by an extraction job."""

    __tablename__ = "extracted_facts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    extraction_job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("extraction_jobs.id"), nullable=False
    )
    fact_type: Mapped[str] = mapped_column(String(100), nullable=False)
    fact_text: Mapped[str] = mapped_column(Text, nullable=False)
    source_location: Mapped[str] = mapped_column(String(500), default="")
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    extraction_timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    approved_status: Mapped[ApprovalStatus] = mapped_column(
        _enum(ApprovalStatus, "approvalstatus"), default=ApprovalStatus.PENDING
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("idx_facts_job", "extraction_job_id", "extraction_timestamp"),
    )


class JobReviewModel(Base):
    """Job-level review record."""

    __tablename__ = "job_reviews"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    extraction_job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("extraction_jobs.id"), nullable=False, index=True
    )
    reviewed_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    review_status: Mapped[str] = mapped_column(String(50), nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    review_notes: Mapped[str] = mapped_column(Text, default="")
    approved_facts_count: Mapped[int] = mapped_column(Integer, default=0)
    rejected_facts_count: Mapped[int] = mapped_column(Integer, default=0)


# =============================================================================
# Custody tables
# =============================================================================


class AuditLogModel(Base):
    """
    Immutable audit log.

    Rows are only ever inserted. sequence_id gives a total insertion order
    that breaks ties between equal timestamps.
    """

    __tablename__ = "audit_log"

    sequence_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), unique=True, default=uuid.uuid4)

    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    event_category: Mapped[EventCategory] = mapped_column(
        _enum(EventCategory, "eventcategory"), nullable=False
    )

    # Actor and correlation
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    matter_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    document_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    extraction_job_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))

    event_data: Mapped[dict] = mapped_column(JSONB, default=dict)

    # Request metadata
    ip_address: Mapped[str] = mapped_column(String(45), nullable=False, default="system")
    user_agent: Mapped[str] = mapped_column(String(500), nullable=False, default="internal")

    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_audit_matter", "matter_id", "timestamp"),
        Index("idx_audit_document", "document_id", "timestamp"),
        Index("idx_audit_user", "user_id"),
        Index("idx_audit_job", "extraction_job_id"),
        Index("idx_audit_event_type", "event_type"),
        Index("idx_audit_timestamp", "timestamp"),
    )


class EvidencePackageModel(Base):
    """Evidence package header."""

    __tablename__ = "evidence_packages"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("matters.id"), nullable=False
    )
    extraction_job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("extraction_jobs.id"), nullable=False
    )
    package_type: Mapped[PackageType] = mapped_column(_enum(PackageType, "packagetype"), nullable=False)
    export_format: Mapped[ExportFormat] = mapped_column(_enum(ExportFormat, "exportformat"), nullable=False)
    status: Mapped[PackageStatus] = mapped_column(
        _enum(PackageStatus, "packagestatus"), nullable=False, default=PackageStatus.GENERATED
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    included_facts_count: Mapped[int] = mapped_column(Integer, default=0)
    included_documents_count: Mapped[int] = mapped_column(Integer, default=0)
    included_audit_entries_count: Mapped[int] = mapped_column(Integer, default=0)
    included_review_records_count: Mapped[int] = mapped_column(Integer, default=0)
    package_metadata: Mapped[dict] = mapped_column("metadata", JSONB, default=dict)

    certificate_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))

    generated_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    locked_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    filed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("idx_packages_matter", "matter_id", "generated_at"),
    )


class PackageContentSnapshotModel(Base):
    """Insert-only frozen copy of one packaged fact or document."""

    __tablename__ = "package_content_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    package_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("evidence_packages.id"), nullable=False, index=True
    )
    content_type: Mapped[ContentType] = mapped_column(_enum(ContentType, "contenttype"), nullable=False)
    content_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    content_snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class CertificateModel(Base):
    """Certificate of authenticity. At most one per package."""

    __tablename__ = "certificates_of_authenticity"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    package_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("evidence_packages.id"), nullable=False, unique=True
    )
    certificate_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    issued_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    issuer_title: Mapped[str] = mapped_column(String(100), default="Attorney")
    attestation_text: Mapped[str] = mapped_column(Text, nullable=False)
    chain_of_custody_verified: Mapped[bool] = mapped_column(Boolean, default=True)
    ai_disclosure_included: Mapped[bool] = mapped_column(Boolean, default=True)
    attorney_review_certified: Mapped[bool] = mapped_column(Boolean, default=True)
    issued_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
