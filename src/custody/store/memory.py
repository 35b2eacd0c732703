"""
In-memory store backends.

Used by the test suite and for local development without PostgreSQL.
Every mutation happens without an intervening await, so each operation is
atomic with respect to other coroutines on the same event loop.
"""

import copy
import hashlib
import logging
from dataclasses import replace
from typing import Any, Iterable, Optional
from uuid import UUID

from custody.exceptions import DuplicateCertificateError, NotFoundError
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
from custody.store.base import DocumentStorage, EntityStore, EventStore

logger = logging.getLogger(__name__)


def _detached(entry: AuditEntry) -> AuditEntry:
    return replace(entry, event_data=copy.deepcopy(entry.event_data))


class InMemoryEventStore(EventStore):
    """Append-only list of audit entries."""

    def __init__(self):
        self._entries: list[AuditEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    async def append(self, entry: AuditEntry) -> None:
        # Entries are immutable once stored; keep a private copy of the payload
        self._entries.append(_detached(entry))

    def _ordered(self, audit_filter: AuditFilter, ascending: bool) -> list[AuditEntry]:
        # Insertion position breaks timestamp ties, like the SQL sequence column
        indexed = [
            (entry.timestamp, position, entry)
            for position, entry in enumerate(self._entries)
            if audit_filter.matches(entry)
        ]
        indexed.sort(key=lambda item: (item[0], item[1]), reverse=not ascending)
        return [entry for _, _, entry in indexed]

    async def query(
        self,
        audit_filter: AuditFilter,
        limit: Optional[int] = None,
        offset: int = 0,
        ascending: bool = False,
    ) -> list[AuditEntry]:
        entries = self._ordered(audit_filter, ascending)
        end = offset + limit if limit is not None else None
        return [_detached(entry) for entry in entries[offset:end]]

    async def count(self, audit_filter: AuditFilter) -> int:
        return sum(1 for entry in self._entries if audit_filter.matches(entry))

    async def stats(self, matter_id: UUID) -> AuditStats:
        entries = [e for e in self._entries if e.matter_id == matter_id]
        if not entries:
            return AuditStats()

        def documents_where(predicate) -> int:
            return len({
                e.document_id for e in entries
                if e.document_id is not None and predicate(e.event_type)
            })

        timestamps = [e.timestamp for e in entries]
        return AuditStats(
            total_events=len(entries),
            unique_users=len({e.user_id for e in entries if e.user_id is not None}),
            document_events=documents_where(lambda t: t.startswith("document.")),
            extraction_events=documents_where(lambda t: t.startswith("extraction.")),
            privilege_events=documents_where(lambda t: ".privilege_" in t),
            first_event=min(timestamps),
            last_event=max(timestamps),
        )


class InMemoryEntityStore(EntityStore):
    """
    Dictionary-backed entity store.

    The add_* methods stand in for the platform services that own users,
    matters, documents and extraction results.
    """

    def __init__(self):
        self.users: dict[UUID, User] = {}
        self.matters: dict[UUID, Matter] = {}
        self.documents: dict[UUID, Document] = {}
        self.extractions: dict[UUID, Extraction] = {}
        self.reviews: dict[UUID, Review] = {}
        self.jobs: dict[UUID, ExtractionJob] = {}
        self.facts: dict[UUID, ExtractedFact] = {}
        self.job_reviews: dict[UUID, JobReview] = {}
        self.packages: dict[UUID, EvidencePackageRecord] = {}
        self.snapshots: dict[UUID, list[PackageContentSnapshot]] = {}
        self.certificates: dict[UUID, Certificate] = {}

    # Seeding

    def add_user(self, user: User) -> User:
        self.users[user.id] = user
        return user

    def add_matter(self, matter: Matter) -> Matter:
        self.matters[matter.id] = matter
        return matter

    def add_document(self, document: Document) -> Document:
        self.documents[document.id] = document
        return document

    def add_extraction(self, extraction: Extraction) -> Extraction:
        self.extractions[extraction.id] = extraction
        return extraction

    def add_review(self, review: Review) -> Review:
        self.reviews[review.id] = review
        return review

    def add_extraction_job(self, job: ExtractionJob) -> ExtractionJob:
        self.jobs[job.id] = job
        return job

    def add_fact(self, fact: ExtractedFact) -> ExtractedFact:
        self.facts[fact.id] = fact
        return fact

    def add_job_review(self, review: JobReview) -> JobReview:
        self.job_reviews[review.id] = review
        return review

    # Reads

    async def get_user(self, user_id: UUID) -> Optional[User]:
        return self.users.get(user_id)

    async def get_users(self, user_ids: Iterable[UUID]) -> dict[UUID, User]:
        return {uid: self.users[uid] for uid in set(user_ids) if uid in self.users}

    async def get_matter(self, matter_id: UUID) -> Optional[Matter]:
        return self.matters.get(matter_id)

    async def get_document(self, document_id: UUID) -> Optional[Document]:
        return self.documents.get(document_id)

    async def list_privileged_documents(self, matter_id: UUID) -> list[Document]:
        documents = [
            d for d in self.documents.values()
            if d.matter_id == matter_id and d.deleted_at is None and d.is_privileged
        ]
        return sorted(documents, key=lambda d: (d.created_at, str(d.id)))

    async def list_extractions(self, document_id: UUID) -> list[Extraction]:
        extractions = [e for e in self.extractions.values() if e.document_id == document_id]
        return sorted(extractions, key=lambda e: (e.created_at, str(e.id)))

    async def list_reviews(self, extraction_ids: Iterable[UUID]) -> list[Review]:
        wanted = set(extraction_ids)
        reviews = [r for r in self.reviews.values() if r.extraction_id in wanted]
        return sorted(reviews, key=lambda r: (r.reviewed_at, str(r.id)))

    async def get_extraction_job(self, job_id: UUID) -> Optional[ExtractionJob]:
        return self.jobs.get(job_id)

    async def list_job_documents(self, job_id: UUID) -> list[Document]:
        job = self.jobs.get(job_id)
        if job is None:
            return []
        document = self.documents.get(job.document_id)
        return [document] if document else []

    async def list_facts(
        self,
        job_id: UUID,
        fact_filter: FactFilter,
        limit: Optional[int] = None,
    ) -> list[ExtractedFact]:
        facts = [
            f for f in self.facts.values()
            if f.extraction_job_id == job_id and fact_filter.matches(f)
        ]
        facts.sort(key=lambda f: str(f.id), reverse=True)
        facts.sort(key=lambda f: f.extraction_timestamp, reverse=True)
        return facts[:limit] if limit is not None else facts

    async def get_fact(self, fact_id: UUID) -> Optional[ExtractedFact]:
        return self.facts.get(fact_id)

    async def list_job_reviews(self, job_id: UUID) -> list[JobReview]:
        reviews = [r for r in self.job_reviews.values() if r.extraction_job_id == job_id]
        reviews.sort(key=lambda r: str(r.id), reverse=True)
        reviews.sort(key=lambda r: r.reviewed_at, reverse=True)
        return reviews

    # Packages

    async def save_package(
        self,
        package: EvidencePackageRecord,
        snapshots: list[PackageContentSnapshot],
        certificate: Optional[Certificate] = None,
    ) -> None:
        stored = replace(package)
        if certificate is not None:
            if await self.certificate_number_exists(certificate.certificate_number):
                raise DuplicateCertificateError(
                    f"Certificate number {certificate.certificate_number} is already issued"
                )
            stored.certificate_id = certificate.id
            self.certificates[certificate.id] = certificate
        self.packages[package.id] = stored
        self.snapshots[package.id] = list(snapshots)

    async def get_package(self, package_id: UUID) -> Optional[EvidencePackageRecord]:
        package = self.packages.get(package_id)
        return replace(package) if package else None

    async def list_packages(self, matter_id: UUID) -> list[EvidencePackageRecord]:
        packages = [replace(p) for p in self.packages.values() if p.matter_id == matter_id]
        packages.sort(key=lambda p: p.generated_at, reverse=True)
        return packages

    async def list_snapshots(self, package_id: UUID) -> list[PackageContentSnapshot]:
        return list(self.snapshots.get(package_id, []))

    async def compare_and_set_status(
        self,
        package_id: UUID,
        expected: Iterable[PackageStatus],
        new_status: PackageStatus,
        changes: Optional[dict[str, Any]] = None,
    ) -> bool:
        package = self.packages.get(package_id)
        if package is None:
            return False
        if package.status == PackageStatus.FILED or package.status not in set(expected):
            return False
        self.packages[package_id] = replace(package, status=new_status, **(changes or {}))
        return True

    # Certificates

    async def certificate_number_exists(self, certificate_number: str) -> bool:
        return any(
            c.certificate_number == certificate_number for c in self.certificates.values()
        )

    async def save_certificate(self, certificate: Certificate) -> None:
        package = self.packages.get(certificate.package_id)
        if package is None:
            raise NotFoundError("evidence package", certificate.package_id)
        if package.certificate_id is not None or any(
            c.package_id == certificate.package_id for c in self.certificates.values()
        ):
            raise DuplicateCertificateError(
                f"Evidence package {certificate.package_id} already has a certificate"
            )
        if await self.certificate_number_exists(certificate.certificate_number):
            raise DuplicateCertificateError(
                f"Certificate number {certificate.certificate_number} is already issued"
            )
        self.certificates[certificate.id] = certificate
        self.packages[package.id] = replace(package, certificate_id=certificate.id)

    async def get_certificate(self, certificate_id: UUID) -> Optional[Certificate]:
        return self.certificates.get(certificate_id)


class InMemoryDocumentStorage(DocumentStorage):
    """Document bytes held in a dictionary keyed by storage key."""

    def __init__(self):
        self._blobs: dict[str, bytes] = {}

    def put(self, storage_key: str, content: bytes) -> str:
        """Store content and return its SHA-256 hex digest."""
        self._blobs[storage_key] = content
        return hashlib.sha256(content).hexdigest()

    def remove(self, storage_key: str) -> None:
        self._blobs.pop(storage_key, None)

    async def read(self, storage_key: str) -> bytes:
        try:
            return self._blobs[storage_key]
        except KeyError as e:
            raise NotFoundError("stored document", storage_key) from e

    async def digest(self, storage_key: str) -> str:
        return hashlib.sha256(await self.read(storage_key)).hexdigest()
