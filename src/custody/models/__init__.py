"""
Domain records for the custody core.

Plain dataclasses shared by the store backends and the services.
"""

from custody.models.audit import (
    AuditEntry,
    AuditStats,
    ClientContext,
    Correlation,
    EventCategory,
    SYSTEM_CONTEXT,
)
from custody.models.entities import (
    ApprovalStatus,
    Document,
    ExtractedFact,
    Extraction,
    ExtractionJob,
    JobReview,
    Matter,
    Review,
    User,
)
from custody.models.filters import AuditFilter, FactFilter, Page
from custody.models.package import (
    Certificate,
    ContentType,
    EvidencePackageRecord,
    ExportFormat,
    PackageContentSnapshot,
    PackageStatus,
    PackageType,
)

__all__ = [
    # Audit
    "AuditEntry",
    "AuditStats",
    "ClientContext",
    "Correlation",
    "EventCategory",
    "SYSTEM_CONTEXT",
    # Entities
    "ApprovalStatus",
    "Document",
    "ExtractedFact",
    "Extraction",
    "ExtractionJob",
    "JobReview",
    "Matter",
    "Review",
    "User",
    # Filters
    "AuditFilter",
    "FactFilter",
    "Page",
    # Packages
    "Certificate",
    "ContentType",
    "EvidencePackageRecord",
    "ExportFormat",
    "PackageContentSnapshot",
    "PackageStatus",
    "PackageType",
]
