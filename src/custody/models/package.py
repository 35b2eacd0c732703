"""
Evidence package records, content snapshots and certificates.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4


class PackageType(str, Enum):
    """What an evidence package is assembled for."""

    FULL_EVIDENCE = "full_evidence"
    AUDIT_ONLY = "audit_only"
    FACTS_ONLY = "facts_only"
    COURT_READY = "court_ready"


class PackageStatus(str, Enum):
    """Lifecycle status of an evidence package."""

    DRAFT = "draft"
    GENERATED = "generated"
    CERTIFIED = "certified"
    DELIVERED = "delivered"
    FILED = "filed"


class ExportFormat(str, Enum):
    """Export representations of the canonical payload."""

    PDF = "pdf"
    DOCX = "docx"
    JSON = "json"
    CSV = "csv"
    ZIP = "zip"


class ContentType(str, Enum):
    """Kinds of snapshotted package content."""

    EXTRACTED_FACT = "extracted_fact"
    SOURCE_DOCUMENT = "source_document"


@dataclass
class EvidencePackageRecord:
    """Persisted evidence package header."""

    matter_id: UUID
    extraction_job_id: UUID
    package_type: PackageType
    export_format: ExportFormat
    title: str
    file_hash: str
    generated_by: UUID
    id: UUID = field(default_factory=uuid4)
    description: Optional[str] = None
    status: PackageStatus = PackageStatus.GENERATED
    included_facts_count: int = 0
    included_documents_count: int = 0
    included_audit_entries_count: int = 0
    included_review_records_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    certificate_id: Optional[UUID] = None
    generated_at: datetime = field(default_factory=datetime.utcnow)
    locked_at: Optional[datetime] = None
    locked_by: Optional[UUID] = None
    delivered_at: Optional[datetime] = None
    filed_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": str(self.id),
            "matter_id": str(self.matter_id),
            "extraction_job_id": str(self.extraction_job_id),
            "package_type": self.package_type.value,
            "export_format": self.export_format.value,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "file_hash": self.file_hash,
            "generated_by": str(self.generated_by),
            "generated_at": self.generated_at.isoformat(),
            "included_facts_count": self.included_facts_count,
            "included_documents_count": self.included_documents_count,
            "included_audit_entries_count": self.included_audit_entries_count,
            "included_review_records_count": self.included_review_records_count,
            "metadata": self.metadata,
            "certificate_id": str(self.certificate_id) if self.certificate_id else None,
            "locked_at": self.locked_at.isoformat() if self.locked_at else None,
            "locked_by": str(self.locked_by) if self.locked_by else None,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "filed_at": self.filed_at.isoformat() if self.filed_at else None,
        }


@dataclass(frozen=True)
class PackageContentSnapshot:
    """Frozen copy of one fact or document as it was packaged."""

    package_id: UUID
    content_type: ContentType
    content_id: UUID
    content_snapshot: str
    content_hash: str
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "package_id": str(self.package_id),
            "content_type": self.content_type.value,
            "content_id": str(self.content_id),
            "content_hash": self.content_hash,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Certificate:
    """Certificate of authenticity for a court-ready package."""

    package_id: UUID
    certificate_number: str
    issued_by: UUID
    attestation_text: str
    id: UUID = field(default_factory=uuid4)
    issuer_title: str = "Attorney"
    chain_of_custody_verified: bool = True
    ai_disclosure_included: bool = True
    attorney_review_certified: bool = True
    issued_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "package_id": str(self.package_id),
            "certificate_number": self.certificate_number,
            "issued_by": str(self.issued_by),
            "issuer_title": self.issuer_title,
            "attestation_text": self.attestation_text,
            "chain_of_custody_verified": self.chain_of_custody_verified,
            "ai_disclosure_included": self.ai_disclosure_included,
            "attorney_review_certified": self.attorney_review_certified,
            "issued_at": self.issued_at.isoformat(),
        }
