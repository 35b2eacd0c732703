"""
Evidence package assembly.

An evidence package bundles the facts of one extraction job with the
source documents, audit trail and attorney review records, under a content
hash that does not depend on the export format.

Assembly steps:
1. Check the extraction job exists and belongs to the matter
2. Gather each included content category (concurrently)
3. Build the canonical payload (disclaimers, contents, statistics)
4. Hash the canonical form
5. Persist the package header and one hashed snapshot per fact/document
6. Issue a certificate for court-ready packages
7. Render the requested export representation
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID, uuid4

from custody.audit.recorder import AuditRecorder
from custody.config import settings
from custody.evidence.canonical import content_hash, sha256_hex, snapshot_of
from custody.evidence.certificate import CertificateIssuer
from custody.evidence.export import EvidenceExporter, ExportResult
from custody.evidence.options import PackageContents, PackageOptions
from custody.exceptions import LimitExceededError, NotFoundError, ValidationError
from custody.models import (
    SYSTEM_CONTEXT,
    AuditEntry,
    AuditFilter,
    Certificate,
    ClientContext,
    ContentType,
    EvidencePackageRecord,
    ExtractedFact,
    ExtractionJob,
    PackageContentSnapshot,
    PackageStatus,
    PackageType,
)
from custody.store.base import EntityStore, EventStore

logger = logging.getLogger(__name__)

DISCLAIMERS = {
    "ai_disclosure": (
        "This evidence package contains data extracted and processed using "
        "AI-assisted tools. All extracted facts have been reviewed and approved "
        "by licensed attorneys."
    ),
    "legal_notice": (
        "This package is intended for use in legal proceedings. The contents "
        "represent attorney work product and may be subject to privilege. "
        "Unauthorized access or distribution is prohibited."
    ),
    "chain_of_custody": (
        "Complete audit trail and chain of custody documentation is included. "
        "All timestamps are in UTC. Cryptographic hashes verify document integrity."
    ),
}


def fact_projection(fact: ExtractedFact) -> dict[str, Any]:
    """Fact fields carried into the package payload."""
    return {
        "id": str(fact.id),
        "fact_type": fact.fact_type,
        "fact_text": fact.fact_text,
        "source_location": fact.source_location,
        "confidence_score": fact.confidence_score,
        "extraction_timestamp": fact.extraction_timestamp.isoformat(),
        "approved_status": fact.approved_status.value,
        "approved_by": str(fact.approved_by) if fact.approved_by else None,
        "approved_at": fact.approved_at.isoformat() if fact.approved_at else None,
    }


def build_canonical_payload(options: PackageOptions, contents: PackageContents) -> dict[str, Any]:
    """
    Assemble the payload that is hashed and exported.

    Generation time, package id and export format are left out so the
    same inputs always produce the same payload.
    """
    return {
        "package": {
            "title": options.title,
            "description": options.description,
            "package_type": options.package_type.value,
            "matter_id": str(options.matter_id),
            "extraction_job_id": str(options.extraction_job_id),
        },
        "disclaimer": dict(DISCLAIMERS),
        "contents": {
            "extracted_facts": [fact_projection(f) for f in contents.facts],
            "source_documents": [d.to_dict() for d in contents.documents],
            "audit_trail": [e.to_dict() for e in contents.audit_entries],
            "review_records": [r.to_dict() for r in contents.review_records],
            "extraction_metadata": contents.metadata,
        },
        "statistics": contents.statistics(),
    }


@dataclass
class GeneratedPackage:
    """Result of generating an evidence package."""

    record: EvidencePackageRecord
    payload: dict[str, Any]
    content_hash: str
    export: ExportResult
    certificate: Optional[Certificate] = None

    @property
    def package_id(self) -> UUID:
        return self.record.id

    @property
    def certificate_id(self) -> Optional[UUID]:
        return self.certificate.id if self.certificate else None


class EvidencePackageAssembler:
    """Generates evidence packages from extraction job results."""

    def __init__(
        self,
        entities: EntityStore,
        events: EventStore,
        recorder: Optional[AuditRecorder] = None,
        issuer: Optional[CertificateIssuer] = None,
        exporter: Optional[EvidenceExporter] = None,
        max_facts: Optional[int] = None,
        max_audit_entries: Optional[int] = None,
        generator_version: Optional[str] = None,
    ):
        self.entities = entities
        self.events = events
        self.recorder = recorder
        self.issuer = issuer or CertificateIssuer(entities)
        self.exporter = exporter or EvidenceExporter()
        self.max_facts = max_facts or settings.max_package_facts
        self.max_audit_entries = max_audit_entries or settings.max_custody_events
        self.generator_version = generator_version or settings.generator_version

    async def generate(
        self,
        options: PackageOptions,
        generated_by: UUID,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> GeneratedPackage:
        """
        Generate, persist and export an evidence package.

        Raises:
            NotFoundError: extraction job does not exist
            ValidationError: job belongs to another matter
            LimitExceededError: more facts or audit entries than configured
        """
        job = await self.entities.get_extraction_job(options.extraction_job_id)
        if job is None:
            raise NotFoundError("extraction job", options.extraction_job_id)
        if job.matter_id != options.matter_id:
            raise ValidationError(
                f"Extraction job {job.id} does not belong to matter {options.matter_id}"
            )

        contents = await self.gather_contents(options, job)
        payload = build_canonical_payload(options, contents)
        package_hash = content_hash(payload)

        record = EvidencePackageRecord(
            id=uuid4(),
            matter_id=options.matter_id,
            extraction_job_id=options.extraction_job_id,
            package_type=options.package_type,
            export_format=options.export_format,
            title=options.title,
            description=options.description,
            status=PackageStatus.GENERATED,
            file_hash=package_hash,
            generated_by=generated_by,
            included_facts_count=len(contents.facts),
            included_documents_count=len(contents.documents),
            included_audit_entries_count=len(contents.audit_entries),
            included_review_records_count=len(contents.review_records),
        )
        record.metadata = {
            "include_options": options.include.to_dict(),
            "filter_options": options.filters_dict(),
            "generated_at": record.generated_at.isoformat(),
            "generator_version": self.generator_version,
        }

        # Court-ready packages are stored together with their certificate or not at all
        certificate = None
        if options.package_type == PackageType.COURT_READY:
            certificate = await self.issuer.draft(record.id, generated_by, contents)
            record.certificate_id = certificate.id

        await self.entities.save_package(record, self.build_snapshots(record.id, contents), certificate)
        logger.info(
            f"Generated {options.package_type.value} evidence package {record.id} "
            f"({len(contents.facts)} facts, {len(contents.documents)} documents) hash={package_hash[:16]}"
        )

        export = self.exporter.export(payload, options.export_format, package_hash, str(record.id))

        if self.recorder is not None:
            echo: dict[str, Any] = {
                "package_type": options.package_type.value,
                "export_format": options.export_format.value,
                "content_hash": package_hash,
            }
            if certificate is not None:
                echo["certificate_number"] = certificate.certificate_number
            await self.recorder.log_package_event(
                "evidence_package.generated",
                generated_by,
                options.matter_id,
                record.id,
                echo,
                context,
            )

        return GeneratedPackage(
            record=record,
            payload=payload,
            content_hash=package_hash,
            export=export,
            certificate=certificate,
        )

    async def gather_contents(self, options: PackageOptions, job: ExtractionJob) -> PackageContents:
        """
        Gather every included category. Omitted categories stay empty.

        The reads are independent and run concurrently; none mutates state.
        """
        include = options.include

        facts, documents, audit_entries, review_records = await asyncio.gather(
            self._gather_facts(options) if include.include_facts else _nothing(),
            self.entities.list_job_documents(job.id) if include.include_source_documents else _nothing(),
            self._gather_audit(job.id) if include.include_audit_logs else _nothing(),
            self.entities.list_job_reviews(job.id) if include.include_review_records else _nothing(),
        )

        return PackageContents(
            facts=facts,
            documents=documents,
            audit_entries=audit_entries,
            review_records=review_records,
            metadata=job.to_dict() if include.include_metadata else {},
        )

    async def _gather_facts(self, options: PackageOptions) -> list[ExtractedFact]:
        facts = await self.entities.list_facts(
            options.extraction_job_id, options.filters, limit=self.max_facts + 1
        )
        if len(facts) > self.max_facts:
            raise LimitExceededError("evidence package facts", self.max_facts, len(facts))
        return facts

    async def _gather_audit(self, job_id: UUID) -> list[AuditEntry]:
        entries = await self.events.query(
            AuditFilter(extraction_job_id=job_id), limit=self.max_audit_entries + 1
        )
        if len(entries) > self.max_audit_entries:
            raise LimitExceededError("evidence package audit entries", self.max_audit_entries, len(entries))
        return entries

    @staticmethod
    def build_snapshots(package_id: UUID, contents: PackageContents) -> list[PackageContentSnapshot]:
        """One independently hashed snapshot per fact and per document."""
        snapshots = []
        items: list[tuple[ContentType, Any]] = [
            (ContentType.EXTRACTED_FACT, f) for f in contents.facts
        ] + [
            (ContentType.SOURCE_DOCUMENT, d) for d in contents.documents
        ]
        for content_type, item in items:
            text = snapshot_of(item)
            snapshots.append(
                PackageContentSnapshot(
                    package_id=package_id,
                    content_type=content_type,
                    content_id=item.id,
                    content_snapshot=text,
                    content_hash=sha256_hex(text),
                )
            )
        return snapshots


async def _nothing() -> list:
    return []
