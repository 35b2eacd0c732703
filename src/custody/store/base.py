"""
Store interfaces for the custody core.

Every service receives its stores through its constructor. Production uses
the SQLAlchemy backends in custody.store.sql; tests and local development
use the in-memory backends in custody.store.memory.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional
from uuid import UUID

from custody.models import (
    AuditEntry,
    AuditFilter,
    AuditStats,
    Certificate,
    Document,
    EvidencePackageRecord,
    ExtractedFact,
    Extraction,
    ExtractionJob,
    FactFilter,
    JobReview,
    Matter,
    PackageContentSnapshot,
    PackageStatus,
    Review,
    User,
)


class EventStore(ABC):
    """Append-only persistence for audit entries."""

    @abstractmethod
    async def append(self, entry: AuditEntry) -> None:
        """Insert a new entry. Entries are never updated or deleted."""
        pass

    @abstractmethod
    async def query(
        self,
        audit_filter: AuditFilter,
        limit: Optional[int] = None,
        offset: int = 0,
        ascending: bool = False,
    ) -> list[AuditEntry]:
        """Return entries matching the filter ordered by timestamp."""
        pass

    @abstractmethod
    async def count(self, audit_filter: AuditFilter) -> int:
        """Count entries matching the filter, using the same predicate as query."""
        pass

    @abstractmethod
    async def stats(self, matter_id: UUID) -> AuditStats:
        """Aggregate audit activity for a matter."""
        pass


class EntityStore(ABC):
    """
    Entity records read by the custody core.

    Users, matters, documents, extractions, reviews and extraction jobs are
    owned by other parts of the platform and only read here. Evidence
    packages, snapshots and certificates are written here.
    """

    # Users and matters

    @abstractmethod
    async def get_user(self, user_id: UUID) -> Optional[User]:
        pass

    @abstractmethod
    async def get_users(self, user_ids: Iterable[UUID]) -> dict[UUID, User]:
        """Batch lookup; unknown ids are absent from the result."""
        pass

    @abstractmethod
    async def get_matter(self, matter_id: UUID) -> Optional[Matter]:
        pass

    # Documents, extractions, reviews

    @abstractmethod
    async def get_document(self, document_id: UUID) -> Optional[Document]:
        pass

    @abstractmethod
    async def list_privileged_documents(self, matter_id: UUID) -> list[Document]:
        """Non-deleted privileged documents of a matter, oldest first."""
        pass

    @abstractmethod
    async def list_extractions(self, document_id: UUID) -> list[Extraction]:
        """Extractions of a document by creation time ascending."""
        pass

    @abstractmethod
    async def list_reviews(self, extraction_ids: Iterable[UUID]) -> list[Review]:
        """Reviews of the given extractions by review time ascending."""
        pass

    # Extraction jobs

    @abstractmethod
    async def get_extraction_job(self, job_id: UUID) -> Optional[ExtractionJob]:
        pass

    @abstractmethod
    async def list_job_documents(self, job_id: UUID) -> list[Document]:
        """Source documents an extraction job ran over."""
        pass

    @abstractmethod
    async def list_facts(
        self,
        job_id: UUID,
        fact_filter: FactFilter,
        limit: Optional[int] = None,
    ) -> list[ExtractedFact]:
        """Facts of a job matching the filter, newest first, id as tie-break."""
        pass

    @abstractmethod
    async def get_fact(self, fact_id: UUID) -> Optional[ExtractedFact]:
        pass

    @abstractmethod
    async def list_job_reviews(self, job_id: UUID) -> list[JobReview]:
        """Job-level review records, newest first."""
        pass

    # Evidence packages

    @abstractmethod
    async def save_package(
        self,
        package: EvidencePackageRecord,
        snapshots: list[PackageContentSnapshot],
        certificate: Optional[Certificate] = None,
    ) -> None:
        """
        Persist a package header, its snapshots and its certificate in one
        unit of work. Nothing is stored when any part fails.

        Raises:
            DuplicateCertificateError: the certificate number is taken
        """
        pass

    @abstractmethod
    async def get_package(self, package_id: UUID) -> Optional[EvidencePackageRecord]:
        pass

    @abstractmethod
    async def list_packages(self, matter_id: UUID) -> list[EvidencePackageRecord]:
        """Packages of a matter, newest first."""
        pass

    @abstractmethod
    async def list_snapshots(self, package_id: UUID) -> list[PackageContentSnapshot]:
        pass

    @abstractmethod
    async def compare_and_set_status(
        self,
        package_id: UUID,
        expected: Iterable[PackageStatus],
        new_status: PackageStatus,
        changes: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Atomically move a package to new_status.

        The update applies only if the current status is one of expected and
        is not filed. Returns False without mutating anything otherwise.
        """
        pass

    # Certificates

    @abstractmethod
    async def certificate_number_exists(self, certificate_number: str) -> bool:
        pass

    @abstractmethod
    async def save_certificate(self, certificate: Certificate) -> None:
        """
        Persist a certificate and attach it to its package.

        Raises:
            DuplicateCertificateError: package already has a certificate or
                the number is taken
        """
        pass

    @abstractmethod
    async def get_certificate(self, certificate_id: UUID) -> Optional[Certificate]:
        pass


class DocumentStorage(ABC):
    """Read access to stored document bytes."""

    @abstractmethod
    async def read(self, storage_key: str) -> bytes:
        """
        Read the full content of a stored document.

        Raises:
            NotFoundError: nothing stored under the key
        """
        pass

    @abstractmethod
    async def digest(self, storage_key: str) -> str:
        """SHA-256 hex digest of the stored bytes."""
        pass
