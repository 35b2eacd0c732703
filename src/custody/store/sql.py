"""
SQLAlchemy store backends.

Each method opens its own session from the factory, so concurrent reads
issued with asyncio.gather never share a session. Every filter value is a
bound parameter; no value is ever formatted into statement text.
"""

import logging
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import Select, Update, case, distinct, func, select, update
from sqlalchemy.exc import IntegrityError as DBIntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from custody.db.orm import (
    AuditLogModel,
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
from custody.store.base import EntityStore, EventStore

logger = logging.getLogger(__name__)


# =============================================================================
# Statement builders
# =============================================================================


def audit_conditions(audit_filter: AuditFilter) -> list[ColumnElement[bool]]:
    """Map each set filter field to a parameterized predicate."""
    conditions: list[ColumnElement[bool]] = []
    if audit_filter.matter_id is not None:
        conditions.append(AuditLogModel.matter_id == audit_filter.matter_id)
    if audit_filter.document_id is not None:
        conditions.append(AuditLogModel.document_id == audit_filter.document_id)
    if audit_filter.user_id is not None:
        conditions.append(AuditLogModel.user_id == audit_filter.user_id)
    if audit_filter.extraction_job_id is not None:
        conditions.append(AuditLogModel.extraction_job_id == audit_filter.extraction_job_id)
    if audit_filter.event_type is not None:
        conditions.append(AuditLogModel.event_type == audit_filter.event_type)
    if audit_filter.event_category is not None:
        conditions.append(AuditLogModel.event_category == audit_filter.event_category)
    if audit_filter.start_date is not None:
        conditions.append(AuditLogModel.timestamp >= audit_filter.start_date)
    if audit_filter.end_date is not None:
        conditions.append(AuditLogModel.timestamp <= audit_filter.end_date)
    return conditions


def build_audit_query(
    audit_filter: AuditFilter,
    limit: Optional[int] = None,
    offset: int = 0,
    ascending: bool = False,
) -> Select:
    """Page query over the audit log."""
    if ascending:
        order = (AuditLogModel.timestamp.asc(), AuditLogModel.sequence_id.asc())
    else:
        order = (AuditLogModel.timestamp.desc(), AuditLogModel.sequence_id.desc())

    stmt = select(AuditLogModel).where(*audit_conditions(audit_filter)).order_by(*order)
    if offset:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    return stmt


def build_audit_count(audit_filter: AuditFilter) -> Select:
    """Count query sharing the page query's predicate."""
    return (
        select(func.count())
        .select_from(AuditLogModel)
        .where(*audit_conditions(audit_filter))
    )


def fact_conditions(job_id: UUID, fact_filter: FactFilter) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = [ExtractedFactModel.extraction_job_id == job_id]
    if fact_filter.min_confidence is not None:
        conditions.append(ExtractedFactModel.confidence_score >= fact_filter.min_confidence)
    if fact_filter.approval_statuses is not None:
        conditions.append(ExtractedFactModel.approved_status.in_(fact_filter.approval_statuses))
    if fact_filter.fact_types is not None:
        conditions.append(ExtractedFactModel.fact_type.in_(fact_filter.fact_types))
    return conditions


# Record fields that differ from their column attribute names
_PACKAGE_COLUMN_NAMES = {"metadata": "package_metadata"}


def build_status_update(
    package_id: UUID,
    expected: Iterable[PackageStatus],
    new_status: PackageStatus,
    changes: Optional[dict[str, Any]] = None,
) -> Update:
    """Guarded status update; matches no row once a package is filed."""
    values = {_PACKAGE_COLUMN_NAMES.get(k, k): v for k, v in (changes or {}).items()}
    return (
        update(EvidencePackageModel)
        .where(
            EvidencePackageModel.id == package_id,
            EvidencePackageModel.status.in_(list(expected)),
            EvidencePackageModel.status != PackageStatus.FILED,
        )
        .values(status=new_status, **values)
    )


# =============================================================================
# Row conversion
# =============================================================================


def _entry_from_row(row: AuditLogModel) -> AuditEntry:
    return AuditEntry(
        id=row.id,
        event_type=row.event_type,
        event_category=row.event_category,
        user_id=row.user_id,
        matter_id=row.matter_id,
        document_id=row.document_id,
        extraction_job_id=row.extraction_job_id,
        event_data=row.event_data or {},
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        timestamp=row.timestamp,
    )


def _user_from_row(row: UserModel) -> User:
    return User(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        bar_number=row.bar_number,
    )


def _document_from_row(row: DocumentModel) -> Document:
    return Document(
        id=row.id,
        matter_id=row.matter_id,
        file_name=row.file_name,
        file_hash=row.file_hash,
        file_size=row.file_size,
        document_type=row.document_type,
        storage_key=row.storage_key,
        uploaded_by=row.uploaded_by,
        attorney_client_privilege=row.attorney_client_privilege,
        work_product=row.work_product,
        privileged_by=row.privileged_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )


def _fact_from_row(row: ExtractedFactModel) -> ExtractedFact:
    return ExtractedFact(
        id=row.id,
        extraction_job_id=row.extraction_job_id,
        fact_type=row.fact_type,
        fact_text=row.fact_text,
        source_location=row.source_location,
        confidence_score=row.confidence_score,
        extraction_timestamp=row.extraction_timestamp,
        approved_status=row.approved_status,
        approved_by=row.approved_by,
        approved_at=row.approved_at,
    )


def _package_from_row(row: EvidencePackageModel) -> EvidencePackageRecord:
    return EvidencePackageRecord(
        id=row.id,
        matter_id=row.matter_id,
        extraction_job_id=row.extraction_job_id,
        package_type=row.package_type,
        export_format=row.export_format,
        status=row.status,
        title=row.title,
        description=row.description,
        file_hash=row.file_hash,
        included_facts_count=row.included_facts_count,
        included_documents_count=row.included_documents_count,
        included_audit_entries_count=row.included_audit_entries_count,
        included_review_records_count=row.included_review_records_count,
        metadata=row.package_metadata or {},
        certificate_id=row.certificate_id,
        generated_by=row.generated_by,
        generated_at=row.generated_at,
        locked_at=row.locked_at,
        locked_by=row.locked_by,
        delivered_at=row.delivered_at,
        filed_at=row.filed_at,
    )


def _snapshot_from_row(row: PackageContentSnapshotModel) -> PackageContentSnapshot:
    return PackageContentSnapshot(
        id=row.id,
        package_id=row.package_id,
        content_type=row.content_type,
        content_id=row.content_id,
        content_snapshot=row.content_snapshot,
        content_hash=row.content_hash,
        created_at=row.created_at,
    )


def _certificate_from_row(row: CertificateModel) -> Certificate:
    return Certificate(
        id=row.id,
        package_id=row.package_id,
        certificate_number=row.certificate_number,
        issued_by=row.issued_by,
        issuer_title=row.issuer_title,
        attestation_text=row.attestation_text,
        chain_of_custody_verified=row.chain_of_custody_verified,
        ai_disclosure_included=row.ai_disclosure_included,
        attorney_review_certified=row.attorney_review_certified,
        issued_at=row.issued_at,
    )


def _certificate_model(certificate: Certificate) -> CertificateModel:
    return CertificateModel(
        id=certificate.id,
        package_id=certificate.package_id,
        certificate_number=certificate.certificate_number,
        issued_by=certificate.issued_by,
        issuer_title=certificate.issuer_title,
        attestation_text=certificate.attestation_text,
        chain_of_custody_verified=certificate.chain_of_custody_verified,
        ai_disclosure_included=certificate.ai_disclosure_included,
        attorney_review_certified=certificate.attorney_review_certified,
        issued_at=certificate.issued_at,
    )


# =============================================================================
# Backends
# =============================================================================


class SQLEventStore(EventStore):
    """Audit log stored in PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def append(self, entry: AuditEntry) -> None:
        async with self.session_factory() as session:
            session.add(
                AuditLogModel(
                    id=entry.id,
                    event_type=entry.event_type,
                    event_category=entry.event_category,
                    user_id=entry.user_id,
                    matter_id=entry.matter_id,
                    document_id=entry.document_id,
                    extraction_job_id=entry.extraction_job_id,
                    event_data=entry.event_data,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    timestamp=entry.timestamp,
                )
            )
            await session.commit()

    async def query(
        self,
        audit_filter: AuditFilter,
        limit: Optional[int] = None,
        offset: int = 0,
        ascending: bool = False,
    ) -> list[AuditEntry]:
        async with self.session_factory() as session:
            result = await session.execute(
                build_audit_query(audit_filter, limit, offset, ascending)
            )
            return [_entry_from_row(row) for row in result.scalars().all()]

    async def count(self, audit_filter: AuditFilter) -> int:
        async with self.session_factory() as session:
            result = await session.execute(build_audit_count(audit_filter))
            return result.scalar_one()

    async def stats(self, matter_id: UUID) -> AuditStats:
        def documents_where(condition) -> Any:
            return func.count(distinct(case((condition, AuditLogModel.document_id))))

        stmt = select(
            func.count(AuditLogModel.id),
            func.count(distinct(AuditLogModel.user_id)),
            documents_where(AuditLogModel.event_type.startswith("document.")),
            documents_where(AuditLogModel.event_type.startswith("extraction.")),
            documents_where(AuditLogModel.event_type.contains(".privilege_")),
            func.min(AuditLogModel.timestamp),
            func.max(AuditLogModel.timestamp),
        ).where(AuditLogModel.matter_id == matter_id)

        async with self.session_factory() as session:
            row = (await session.execute(stmt)).one()

        return AuditStats(
            total_events=row[0] or 0,
            unique_users=row[1] or 0,
            document_events=row[2] or 0,
            extraction_events=row[3] or 0,
            privilege_events=row[4] or 0,
            first_event=row[5],
            last_event=row[6],
        )


class SQLEntityStore(EntityStore):
    """Entity and evidence package records stored in PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _scalars(self, stmt: Select) -> list[Any]:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _scalar(self, stmt: Select) -> Any:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    # Users and matters

    async def get_user(self, user_id: UUID) -> Optional[User]:
        row = await self._scalar(select(UserModel).where(UserModel.id == user_id))
        return _user_from_row(row) if row else None

    async def get_users(self, user_ids: Iterable[UUID]) -> dict[UUID, User]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        rows = await self._scalars(select(UserModel).where(UserModel.id.in_(ids)))
        return {row.id: _user_from_row(row) for row in rows}

    async def get_matter(self, matter_id: UUID) -> Optional[Matter]:
        row = await self._scalar(select(MatterModel).where(MatterModel.id == matter_id))
        if not row:
            return None
        return Matter(
            id=row.id,
            matter_number=row.matter_number,
            matter_name=row.matter_name,
            created_at=row.created_at,
        )

    # Documents, extractions, reviews

    async def get_document(self, document_id: UUID) -> Optional[Document]:
        row = await self._scalar(select(DocumentModel).where(DocumentModel.id == document_id))
        return _document_from_row(row) if row else None

    async def list_privileged_documents(self, matter_id: UUID) -> list[Document]:
        rows = await self._scalars(
            select(DocumentModel)
            .where(
                DocumentModel.matter_id == matter_id,
                DocumentModel.deleted_at.is_(None),
                (DocumentModel.attorney_client_privilege.is_(True))
                | (DocumentModel.work_product.is_(True)),
            )
            .order_by(DocumentModel.created_at.asc(), DocumentModel.id.asc())
        )
        return [_document_from_row(row) for row in rows]

    async def list_extractions(self, document_id: UUID) -> list[Extraction]:
        rows = await self._scalars(
            select(ExtractionModel)
            .where(ExtractionModel.document_id == document_id)
            .order_by(ExtractionModel.created_at.asc(), ExtractionModel.id.asc())
        )
        return [
            Extraction(
                id=row.id,
                document_id=row.document_id,
                extracted_data=row.extracted_data or {},
                source_citations=row.source_citations,
                extracted_by=row.extracted_by,
                reviewed_by=row.reviewed_by,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def list_reviews(self, extraction_ids: Iterable[UUID]) -> list[Review]:
        ids = list(extraction_ids)
        if not ids:
            return []
        rows = await self._scalars(
            select(ReviewModel)
            .where(ReviewModel.extraction_id.in_(ids))
            .order_by(ReviewModel.reviewed_at.asc(), ReviewModel.id.asc())
        )
        return [
            Review(
                id=row.id,
                extraction_id=row.extraction_id,
                reviewer_id=row.reviewer_id,
                field_approvals=row.field_approvals or {},
                reviewed_at=row.reviewed_at,
            )
            for row in rows
        ]

    # Extraction jobs

    async def get_extraction_job(self, job_id: UUID) -> Optional[ExtractionJob]:
        row = await self._scalar(select(ExtractionJobModel).where(ExtractionJobModel.id == job_id))
        if not row:
            return None
        return ExtractionJob(
            id=row.id,
            matter_id=row.matter_id,
            document_id=row.document_id,
            extraction_status=row.extraction_status,
            model_name=row.model_name,
            prompt_template_id=row.prompt_template_id,
            started_at=row.started_at,
            completed_at=row.completed_at,
        )

    async def list_job_documents(self, job_id: UUID) -> list[Document]:
        rows = await self._scalars(
            select(DocumentModel)
            .join(ExtractionJobModel, ExtractionJobModel.document_id == DocumentModel.id)
            .where(ExtractionJobModel.id == job_id)
            .order_by(DocumentModel.created_at.asc(), DocumentModel.id.asc())
        )
        return [_document_from_row(row) for row in rows]

    async def list_facts(
        self,
        job_id: UUID,
        fact_filter: FactFilter,
        limit: Optional[int] = None,
    ) -> list[ExtractedFact]:
        stmt = (
            select(ExtractedFactModel)
            .where(*fact_conditions(job_id, fact_filter))
            .order_by(ExtractedFactModel.extraction_timestamp.desc(), ExtractedFactModel.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [_fact_from_row(row) for row in await self._scalars(stmt)]

    async def get_fact(self, fact_id: UUID) -> Optional[ExtractedFact]:
        row = await self._scalar(select(ExtractedFactModel).where(ExtractedFactModel.id == fact_id))
        return _fact_from_row(row) if row else None

    async def list_job_reviews(self, job_id: UUID) -> list[JobReview]:
        rows = await self._scalars(
            select(JobReviewModel)
            .where(JobReviewModel.extraction_job_id == job_id)
            .order_by(JobReviewModel.reviewed_at.desc(), JobReviewModel.id.desc())
        )
        return [
            JobReview(
                id=row.id,
                extraction_job_id=row.extraction_job_id,
                reviewed_by=row.reviewed_by,
                review_status=row.review_status,
                reviewed_at=row.reviewed_at,
                review_notes=row.review_notes,
                approved_facts_count=row.approved_facts_count,
                rejected_facts_count=row.rejected_facts_count,
            )
            for row in rows
        ]

    # Packages

    async def save_package(
        self,
        package: EvidencePackageRecord,
        snapshots: list[PackageContentSnapshot],
        certificate: Optional[Certificate] = None,
    ) -> None:
        async with self.session_factory() as session:
            session.add(
                EvidencePackageModel(
                    id=package.id,
                    matter_id=package.matter_id,
                    extraction_job_id=package.extraction_job_id,
                    package_type=package.package_type,
                    export_format=package.export_format,
                    status=package.status,
                    title=package.title,
                    description=package.description,
                    file_hash=package.file_hash,
                    included_facts_count=package.included_facts_count,
                    included_documents_count=package.included_documents_count,
                    included_audit_entries_count=package.included_audit_entries_count,
                    included_review_records_count=package.included_review_records_count,
                    package_metadata=package.metadata,
                    certificate_id=package.certificate_id,
                    generated_by=package.generated_by,
                    generated_at=package.generated_at,
                )
            )
            # Header row must exist before the snapshot foreign keys
            await session.flush()
            session.add_all(
                PackageContentSnapshotModel(
                    id=s.id,
                    package_id=s.package_id,
                    content_type=s.content_type,
                    content_id=s.content_id,
                    content_snapshot=s.content_snapshot,
                    content_hash=s.content_hash,
                    created_at=s.created_at,
                )
                for s in snapshots
            )
            if certificate is not None:
                session.add(_certificate_model(certificate))
            try:
                await session.commit()
            except DBIntegrityError as e:
                await session.rollback()
                if certificate is None:
                    raise
                raise DuplicateCertificateError(
                    f"Certificate number {certificate.certificate_number} is already issued"
                ) from e

    async def get_package(self, package_id: UUID) -> Optional[EvidencePackageRecord]:
        row = await self._scalar(
            select(EvidencePackageModel).where(EvidencePackageModel.id == package_id)
        )
        return _package_from_row(row) if row else None

    async def list_packages(self, matter_id: UUID) -> list[EvidencePackageRecord]:
        rows = await self._scalars(
            select(EvidencePackageModel)
            .where(EvidencePackageModel.matter_id == matter_id)
            .order_by(EvidencePackageModel.generated_at.desc())
        )
        return [_package_from_row(row) for row in rows]

    async def list_snapshots(self, package_id: UUID) -> list[PackageContentSnapshot]:
        rows = await self._scalars(
            select(PackageContentSnapshotModel)
            .where(PackageContentSnapshotModel.package_id == package_id)
            .order_by(PackageContentSnapshotModel.created_at.asc(), PackageContentSnapshotModel.id.asc())
        )
        return [_snapshot_from_row(row) for row in rows]

    async def compare_and_set_status(
        self,
        package_id: UUID,
        expected: Iterable[PackageStatus],
        new_status: PackageStatus,
        changes: Optional[dict[str, Any]] = None,
    ) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                build_status_update(package_id, expected, new_status, changes)
            )
            await session.commit()
            return result.rowcount == 1

    # Certificates

    async def certificate_number_exists(self, certificate_number: str) -> bool:
        row = await self._scalar(
            select(CertificateModel.id).where(
                CertificateModel.certificate_number == certificate_number
            )
        )
        return row is not None

    async def save_certificate(self, certificate: Certificate) -> None:
        async with self.session_factory() as session:
            package = (
                await session.execute(
                    select(EvidencePackageModel)
                    .where(EvidencePackageModel.id == certificate.package_id)
                    .with_for_update()
                )
            ).scalar_one_or_none()
            if package is None:
                raise NotFoundError("evidence package", certificate.package_id)
            if package.certificate_id is not None:
                raise DuplicateCertificateError(
                    f"Evidence package {certificate.package_id} already has a certificate"
                )

            session.add(_certificate_model(certificate))
            package.certificate_id = certificate.id
            try:
                await session.commit()
            except DBIntegrityError as e:
                await session.rollback()
                raise DuplicateCertificateError(
                    f"Certificate {certificate.certificate_number} conflicts with an issued certificate"
                ) from e

    async def get_certificate(self, certificate_id: UUID) -> Optional[Certificate]:
        row = await self._scalar(select(CertificateModel).where(CertificateModel.id == certificate_id))
        return _certificate_from_row(row) if row else None
