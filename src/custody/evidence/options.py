"""
Evidence package options and gathered contents.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional
from uuid import UUID

from custody.exceptions import ValidationError
from custody.models import (
    ApprovalStatus,
    AuditEntry,
    Document,
    ExportFormat,
    ExtractedFact,
    FactFilter,
    JobReview,
    PackageType,
)


@dataclass(frozen=True)
class IncludeOptions:
    """
    Content categories to gather.

    Every flag defaults to False; an omitted category is packaged as empty.
    """

    include_facts: bool = False
    include_source_documents: bool = False
    include_audit_logs: bool = False
    include_review_records: bool = False
    include_metadata: bool = False

    @classmethod
    def everything(cls) -> "IncludeOptions":
        return cls(True, True, True, True, True)

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass(frozen=True)
class PackageOptions:
    """What to package, how to filter it and how to export it."""

    matter_id: UUID
    extraction_job_id: UUID
    package_type: PackageType
    title: str
    export_format: ExportFormat = ExportFormat.JSON
    description: Optional[str] = None
    include: IncludeOptions = field(default_factory=IncludeOptions)
    filters: FactFilter = field(default_factory=FactFilter)

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "package_type", PackageType(self.package_type))
            object.__setattr__(self, "export_format", ExportFormat(self.export_format))
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if not self.title or not self.title.strip():
            raise ValidationError("Package title must not be blank")

    def filters_dict(self) -> dict[str, Any]:
        return {
            "min_confidence": self.filters.min_confidence,
            "approval_statuses": (
                [s.value for s in self.filters.approval_statuses]
                if self.filters.approval_statuses else None
            ),
            "fact_types": list(self.filters.fact_types) if self.filters.fact_types else None,
        }


@dataclass
class PackageContents:
    """Everything gathered for one package."""

    facts: list[ExtractedFact] = field(default_factory=list)
    documents: list[Document] = field(default_factory=list)
    audit_entries: list[AuditEntry] = field(default_factory=list)
    review_records: list[JobReview] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def approved_facts_count(self) -> int:
        return sum(1 for f in self.facts if f.approved_status == ApprovalStatus.APPROVED)

    def statistics(self) -> dict[str, int]:
        return {
            "total_facts": len(self.facts),
            "approved_facts": self.approved_facts_count,
            "total_documents": len(self.documents),
            "total_audit_entries": len(self.audit_entries),
            "total_reviews": len(self.review_records),
        }
