"""
Integrity verification.

Documents are verified by recomputing SHA-256 over their stored bytes and
comparing against the hash recorded at upload. A stored hash that is merely
present and well-formed proves nothing, so a missing hash, malformed hash or
missing bytes all count as a failed verification.

Evidence packages are verified snapshot by snapshot: each snapshot's hash is
recomputed from its frozen text, and the frozen text is compared against the
live source record to detect changes made after packaging.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from custody.audit.recorder import AuditRecorder
from custody.evidence.canonical import hashes_match, is_sha256_hex, sha256_hex, snapshot_of
from custody.exceptions import IntegrityError, NotFoundError, ValidationError
from custody.models import SYSTEM_CONTEXT, ClientContext, ContentType, PackageContentSnapshot
from custody.store.base import DocumentStorage, EntityStore

logger = logging.getLogger(__name__)


@dataclass
class IntegrityResult:
    """Outcome of verifying one document."""

    document_id: UUID
    valid: bool
    current_hash: Optional[str]
    original_hash: Optional[str]
    message: str
    verified_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_id": str(self.document_id),
            "valid": self.valid,
            "current_hash": self.current_hash,
            "original_hash": self.original_hash,
            "message": self.message,
            "verified_at": self.verified_at.isoformat(),
        }


@dataclass
class SnapshotCheck:
    """Verification of one packaged fact or document."""

    content_type: ContentType
    content_id: UUID
    snapshot_intact: bool
    source_unchanged: Optional[bool]
    message: str

    @property
    def valid(self) -> bool:
        return self.snapshot_intact and self.source_unchanged is not False

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_type": self.content_type.value,
            "content_id": str(self.content_id),
            "snapshot_intact": self.snapshot_intact,
            "source_unchanged": self.source_unchanged,
            "valid": self.valid,
            "message": self.message,
        }


@dataclass
class PackageIntegrityReport:
    package_id: UUID
    package_hash: str
    checks: list[SnapshotCheck]
    verified_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def valid(self) -> bool:
        return all(c.valid for c in self.checks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "package_id": str(self.package_id),
            "package_hash": self.package_hash,
            "valid": self.valid,
            "checks": [c.to_dict() for c in self.checks],
            "verified_at": self.verified_at.isoformat(),
        }


class IntegrityVerifier:
    """Detects tampering with documents and packaged content."""

    def __init__(
        self,
        entities: EntityStore,
        storage: DocumentStorage,
        recorder: Optional[AuditRecorder] = None,
    ):
        self.entities = entities
        self.storage = storage
        self.recorder = recorder

    async def verify(
        self,
        document_id: UUID,
        viewer_id: Optional[UUID] = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> IntegrityResult:
        """
        Recompute a document's hash from its bytes and compare.

        Raises:
            NotFoundError: document does not exist
        """
        document = await self.entities.get_document(document_id)
        if document is None:
            raise NotFoundError("document", document_id)

        original = document.file_hash
        current: Optional[str] = None

        if not original:
            result = IntegrityResult(document_id, False, None, None, "No hash recorded for document")
        elif not is_sha256_hex(original):
            result = IntegrityResult(
                document_id, False, None, original, "Recorded hash is not a SHA-256 digest"
            )
        elif not document.storage_key:
            result = IntegrityResult(
                document_id, False, None, original, "No stored content for document"
            )
        else:
            unreadable = None
            try:
                current = await self.storage.digest(document.storage_key)
            except NotFoundError:
                unreadable = "Stored content is missing"
            except ValidationError as e:
                unreadable = f"Stored content is unreadable: {e}"

            if unreadable is not None:
                result = IntegrityResult(document_id, False, None, original, unreadable)
            elif hashes_match(original, current):
                result = IntegrityResult(
                    document_id, True, current, original, "Document integrity verified"
                )
            else:
                result = IntegrityResult(
                    document_id, False, current, original,
                    "Hash mismatch: document content has changed since upload",
                )

        if result.valid:
            logger.info(f"Integrity verified for document {document_id}")
        else:
            logger.warning(f"Integrity check failed for document {document_id}: {result.message}")

        if self.recorder is not None:
            payload: dict[str, Any] = {"valid": result.valid, "reason": result.message}
            if result.current_hash:
                payload["current_hash"] = result.current_hash
            if result.original_hash and is_sha256_hex(result.original_hash):
                payload["original_hash"] = result.original_hash
            await self.recorder.log_document_access_event(
                "document.integrity_verified",
                viewer_id,
                document.matter_id,
                document_id,
                payload,
                context,
            )

        return result

    async def require_intact(
        self,
        document_id: UUID,
        viewer_id: Optional[UUID] = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> IntegrityResult:
        """
        Verify and raise unless the document is intact.

        Raises:
            NotFoundError: document does not exist
            IntegrityError: verification failed
        """
        result = await self.verify(document_id, viewer_id, context)
        if not result.valid:
            raise IntegrityError(
                f"Document {document_id}: {result.message}",
                expected=result.original_hash,
                actual=result.current_hash,
            )
        return result

    async def verify_package(
        self,
        package_id: UUID,
        viewer_id: Optional[UUID] = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> PackageIntegrityReport:
        """
        Verify every snapshot of a package.

        Raises:
            NotFoundError: package does not exist
        """
        package = await self.entities.get_package(package_id)
        if package is None:
            raise NotFoundError("evidence package", package_id)

        snapshots = await self.entities.list_snapshots(package_id)
        checks = [await self._check_snapshot(s) for s in snapshots]
        report = PackageIntegrityReport(package_id, package.file_hash, checks)

        failed = [c for c in checks if not c.valid]
        if failed:
            logger.warning(
                f"Package {package_id} failed integrity verification: "
                f"{len(failed)} of {len(checks)} items"
            )
        else:
            logger.info(f"Package {package_id} verified: {len(checks)} items intact")

        if self.recorder is not None:
            await self.recorder.log_package_event(
                "evidence_package.verified",
                viewer_id,
                package.matter_id,
                package_id,
                {"valid": report.valid, "content_hash": package.file_hash},
                context,
            )

        return report

    async def _check_snapshot(self, snapshot: PackageContentSnapshot) -> SnapshotCheck:
        snapshot_intact = hashes_match(snapshot.content_hash, sha256_hex(snapshot.content_snapshot))

        if snapshot.content_type == ContentType.EXTRACTED_FACT:
            source = await self.entities.get_fact(snapshot.content_id)
        else:
            source = await self.entities.get_document(snapshot.content_id)

        if source is None:
            source_unchanged: Optional[bool] = None
            message = "Source record no longer exists"
        else:
            source_unchanged = hashes_match(snapshot.content_hash, sha256_hex(snapshot_of(source)))
            message = "Source unchanged since packaging" if source_unchanged else "Source changed since packaging"

        if not snapshot_intact:
            message = "Snapshot does not match its recorded hash"

        return SnapshotCheck(
            content_type=snapshot.content_type,
            content_id=snapshot.content_id,
            snapshot_intact=snapshot_intact,
            source_unchanged=source_unchanged,
            message=message,
        )
