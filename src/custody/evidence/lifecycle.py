"""
Evidence package lifecycle.

Status moves forward only:

    draft -> generated -> certified -> delivered -> filed
                                  \\-----------------> filed

Every transition is a single compare-and-set against the store, conditioned
on the expected current status and on the package not being filed, so two
concurrent requests cannot both win and a filed package never changes.
"""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from custody.audit.recorder import AuditRecorder
from custody.exceptions import NotFoundError, StatusTransitionError, ValidationError
from custody.models import (
    SYSTEM_CONTEXT,
    Certificate,
    ClientContext,
    EvidencePackageRecord,
    PackageStatus,
    PackageType,
)
from custody.store.base import EntityStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[PackageStatus, frozenset[PackageStatus]] = {
    PackageStatus.DRAFT: frozenset({PackageStatus.GENERATED}),
    PackageStatus.GENERATED: frozenset({PackageStatus.CERTIFIED}),
    PackageStatus.CERTIFIED: frozenset({PackageStatus.DELIVERED, PackageStatus.FILED}),
    PackageStatus.DELIVERED: frozenset({PackageStatus.FILED}),
    PackageStatus.FILED: frozenset(),
}


def can_transition(current: PackageStatus, requested: PackageStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


def sources_for(requested: PackageStatus) -> frozenset[PackageStatus]:
    """Statuses a package may be in to move to requested."""
    return frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if requested in targets)


class PackageLifecycle:
    """Lookups and status transitions for evidence packages."""

    def __init__(self, entities: EntityStore, recorder: Optional[AuditRecorder] = None):
        self.entities = entities
        self.recorder = recorder

    async def get_package(self, package_id: UUID) -> EvidencePackageRecord:
        package = await self.entities.get_package(package_id)
        if package is None:
            raise NotFoundError("evidence package", package_id)
        return package

    async def get_certificate(self, package: EvidencePackageRecord) -> Optional[Certificate]:
        if package.certificate_id is None:
            return None
        return await self.entities.get_certificate(package.certificate_id)

    async def list_packages_for_matter(self, matter_id: UUID) -> list[EvidencePackageRecord]:
        """Packages of a matter, newest first."""
        return await self.entities.list_packages(matter_id)

    async def lock_package(
        self,
        package_id: UUID,
        locked_by: UUID,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> EvidencePackageRecord:
        """
        Certify a generated package, preventing further modification.

        Raises:
            ValidationError: a court-ready package has no certificate
        """
        package = await self.entities.get_package(package_id)
        if package is None:
            raise NotFoundError("evidence package", package_id)
        if package.package_type == PackageType.COURT_READY and package.certificate_id is None:
            raise ValidationError(f"Court-ready package {package_id} has no certificate")

        return await self._transition(
            package_id,
            PackageStatus.CERTIFIED,
            locked_by,
            {"locked_at": datetime.utcnow(), "locked_by": locked_by},
            "evidence_package.locked",
            context,
        )

    async def mark_delivered(
        self,
        package_id: UUID,
        delivered_by: UUID,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> EvidencePackageRecord:
        return await self._transition(
            package_id,
            PackageStatus.DELIVERED,
            delivered_by,
            {"delivered_at": datetime.utcnow()},
            "evidence_package.delivered",
            context,
        )

    async def mark_filed(
        self,
        package_id: UUID,
        filed_by: UUID,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> EvidencePackageRecord:
        """File a certified or delivered package. Filing is final."""
        return await self._transition(
            package_id,
            PackageStatus.FILED,
            filed_by,
            {"filed_at": datetime.utcnow()},
            "evidence_package.filed",
            context,
        )

    async def _transition(
        self,
        package_id: UUID,
        requested: PackageStatus,
        actor_id: UUID,
        changes: dict[str, Any],
        event_type: str,
        context: ClientContext,
    ) -> EvidencePackageRecord:
        """
        Apply one guarded transition.

        Raises:
            NotFoundError: package does not exist
            StatusTransitionError: current status does not allow it
        """
        applied = await self.entities.compare_and_set_status(
            package_id, sources_for(requested), requested, changes
        )
        package = await self.entities.get_package(package_id)
        if package is None:
            raise NotFoundError("evidence package", package_id)

        if not applied:
            logger.warning(
                f"Rejected transition of package {package_id} "
                f"from {package.status.value} to {requested.value}"
            )
            raise StatusTransitionError(package_id, package.status.value, requested.value)

        logger.info(f"Evidence package {package_id} moved to {requested.value}")

        if self.recorder is not None:
            await self.recorder.log_package_event(
                event_type,
                actor_id,
                package.matter_id,
                package_id,
                {"to_status": requested.value},
                context,
            )

        return package
