"""
Database module for the custody core.
"""

from custody.db.orm import (
    AuditLogModel,
    Base,
    CertificateModel,
    DocumentModel,
    EvidencePackageModel,
    ExtractedFactModel,
    ExtractionJobModel,
    ExtractionModel,
    JobReviewModel,
    MatterModel,
    PackageContentSnapshotModel,
    ReviewModel,
    UserModel,
)
from custody.db.session import create_engine, create_session_factory

__all__ = [
    "Base",
    "UserModel",
    "MatterModel",
    "DocumentModel",
    "ExtractionModel",
    "ReviewModel",
    "ExtractionJobModel",
    "ExtractedFactModel",
    "JobReviewModel",
    "AuditLogModel",
    "EvidencePackageModel",
    "PackageContentSnapshotModel",
    "CertificateModel",
    "create_engine",
    "create_session_factory",
]
