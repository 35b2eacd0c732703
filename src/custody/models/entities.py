"""
Records owned by external collaborators.

Users, matters, documents, extractions, reviews and extraction jobs are
created elsewhere in the platform; the custody core only reads them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4


class ApprovalStatus(str, Enum):
    """Attorney review outcome for an extracted fact."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"


@dataclass
class User:
    """A platform user; attorneys carry a bar number."""

    id: UUID = field(default_factory=uuid4)
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    bar_number: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Matter:
    """A legal matter grouping documents."""

    id: UUID = field(default_factory=uuid4)
    matter_number: str = ""
    matter_name: str = ""
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "matter_number": self.matter_number,
            "matter_name": self.matter_name,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Document:
    """An uploaded document and its privilege flags."""

    matter_id: UUID
    file_name: str
    file_hash: Optional[str]
    id: UUID = field(default_factory=uuid4)
    storage_key: Optional[str] = None
    file_size: Optional[int] = None
    document_type: Optional[str] = None
    uploaded_by: Optional[UUID] = None
    attorney_client_privilege: bool = False
    work_product: bool = False
    privileged_by: Optional[UUID] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    deleted_at: Optional[datetime] = None

    @property
    def is_privileged(self) -> bool:
        return self.attorney_client_privilege or self.work_product

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "matter_id": str(self.matter_id),
            "file_name": self.file_name,
            "file_hash": self.file_hash,
            "file_size": self.file_size,
            "document_type": self.document_type,
            "uploaded_by": str(self.uploaded_by) if self.uploaded_by else None,
            "attorney_client_privilege": self.attorney_client_privilege,
            "work_product": self.work_product,
            "privileged_by": str(self.privileged_by) if self.privileged_by else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }


@dataclass
class Extraction:
    """Structured data extracted from a document."""

    document_id: UUID
    extracted_data: dict[str, Any]
    extracted_by: Optional[UUID]
    id: UUID = field(default_factory=uuid4)
    source_citations: Optional[list[Any]] = None
    reviewed_by: Optional[UUID] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "document_id": str(self.document_id),
            "extracted_data": self.extracted_data,
            "source_citations": self.source_citations,
            "extracted_by": str(self.extracted_by) if self.extracted_by else None,
            "reviewed_by": str(self.reviewed_by) if self.reviewed_by else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Review:
    """Attorney review of a single extraction."""

    extraction_id: UUID
    reviewer_id: UUID
    field_approvals: dict[str, Any]
    id: UUID = field(default_factory=uuid4)
    reviewed_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "extraction_id": str(self.extraction_id),
            "reviewer_id": str(self.reviewer_id),
            "field_approvals": self.field_approvals,
            "reviewed_at": self.reviewed_at.isoformat(),
        }


@dataclass
class ExtractionJob:
    """An AI-assisted fact extraction run over one document."""

    matter_id: UUID
    document_id: UUID
    id: UUID = field(default_factory=uuid4)
    extraction_status: str = "completed"
    model_name: Optional[str] = None
    prompt_template_id: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "matter_id": str(self.matter_id),
            "document_id": str(self.document_id),
            "extraction_status": self.extraction_status,
            "model_name": self.model_name,
            "prompt_template_id": self.prompt_template_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class ExtractedFact:
    """A fact produced by an extraction job, with its review outcome."""

    extraction_job_id: UUID
    fact_type: str
    fact_text: str
    source_location: str
    confidence_score: float
    id: UUID = field(default_factory=uuid4)
    extraction_timestamp: datetime = field(default_factory=datetime.utcnow)
    approved_status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "extraction_job_id": str(self.extraction_job_id),
            "fact_type": self.fact_type,
            "fact_text": self.fact_text,
            "source_location": self.source_location,
            "confidence_score": self.confidence_score,
            "extraction_timestamp": self.extraction_timestamp.isoformat(),
            "approved_status": self.approved_status.value,
            "approved_by": str(self.approved_by) if self.approved_by else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
        }


@dataclass
class JobReview:
    """Job-level attorney review record."""

    extraction_job_id: UUID
    reviewed_by: UUID
    review_status: str
    id: UUID = field(default_factory=uuid4)
    reviewed_at: datetime = field(default_factory=datetime.utcnow)
    review_notes: str = ""
    approved_facts_count: int = 0
    rejected_facts_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "extraction_job_id": str(self.extraction_job_id),
            "reviewed_by": str(self.reviewed_by),
            "review_status": self.review_status,
            "reviewed_at": self.reviewed_at.isoformat(),
            "review_notes": self.review_notes,
            "approved_facts_count": self.approved_facts_count,
            "rejected_facts_count": self.rejected_facts_count,
        }
