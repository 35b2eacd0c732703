"""
Audit recorder.

Validates domain events and appends them to the event store.

Failure policy:
- Invalid input (unknown namespace, inconsistent category, malformed
  payload) always raises ValidationError.
- A store failure for an authentication or authorization event propagates:
  that audit entry is itself the compliance record.
- A store failure for any other category is absorbed. It is logged, counted
  on the diagnostics channel and returned inside the RecordResult, so the
  primary business action is never aborted by audit bookkeeping.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union
from uuid import UUID

from custody.audit.diagnostics import AuditDiagnostics
from custody.audit.payloads import EventPayload, build_payload
from custody.audit.taxonomy import validate_category
from custody.exceptions import NonCriticalLoggingFailure
from custody.models import SYSTEM_CONTEXT, AuditEntry, ClientContext, Correlation, EventCategory
from custody.store.base import EventStore

logger = logging.getLogger(__name__)

Payload = Union[EventPayload, Mapping[str, Any], None]


@dataclass(frozen=True)
class RecordResult:
    """Outcome of an append."""

    entry_id: UUID
    recorded: bool
    failure: Optional[NonCriticalLoggingFailure] = None

    @property
    def ok(self) -> bool:
        return self.recorded and self.failure is None


class AuditRecorder:
    """Appends validated audit entries to an event store."""

    def __init__(self, store: EventStore, diagnostics: Optional[AuditDiagnostics] = None):
        self.store = store
        self.diagnostics = diagnostics or AuditDiagnostics()

    async def append(
        self,
        event_type: str,
        category: Union[EventCategory, str],
        actor_id: Optional[UUID] = None,
        correlation: Optional[Correlation] = None,
        payload: Payload = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> RecordResult:
        """
        Record one audit event.

        Args:
            event_type: Dotted event type, e.g. ``document.viewed``
            category: Category; must match the event type's namespace
            actor_id: Acting user, None for system actions
            correlation: Matter, document and extraction job ids
            payload: Envelope model or mapping for the event type
            context: Client IP address and user agent

        Returns:
            RecordResult with the entry id; recorded is False when a
            non-critical write was absorbed

        Raises:
            ValidationError: inconsistent category or malformed payload
            Exception: store failure for authentication/authorization events
        """
        category = validate_category(event_type, category)
        event_data = build_payload(event_type, payload)
        correlation = correlation or Correlation()

        entry = AuditEntry(
            event_type=event_type,
            event_category=category,
            event_data=event_data,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            user_id=actor_id,
            matter_id=correlation.matter_id,
            document_id=correlation.document_id,
            extraction_job_id=correlation.extraction_job_id,
        )

        try:
            await self.store.append(entry)
        except Exception as e:
            if category.is_critical:
                logger.error(f"Failed to record {category.value} event {event_type}: {e}")
                raise
            failure = NonCriticalLoggingFailure(event_type, category.value, e)
            logger.error(f"Audit write absorbed for {event_type}: {e}", exc_info=True)
            self.diagnostics.record_failure(failure)
            return RecordResult(entry_id=entry.id, recorded=False, failure=failure)

        logger.debug(f"Recorded audit event {event_type} ({entry.id})")
        return RecordResult(entry_id=entry.id, recorded=True)

    # Convenience recorders, one per event family

    async def log_auth_event(
        self,
        event_type: str,
        user_id: Optional[UUID],
        payload: Payload = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> RecordResult:
        """login.success, login.failed, logout, token.refreshed, session.expired"""
        return await self.append(
            event_type, EventCategory.AUTHENTICATION, user_id, payload=payload, context=context
        )

    async def log_matter_access_event(
        self,
        event_type: str,
        user_id: UUID,
        matter_id: UUID,
        payload: Payload = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> RecordResult:
        """matter.created, matter.accessed, matter.access_granted, ..."""
        return await self.append(
            event_type,
            EventCategory.AUTHORIZATION,
            user_id,
            Correlation(matter_id=matter_id),
            payload,
            context,
        )

    async def log_document_access_event(
        self,
        event_type: str,
        user_id: Optional[UUID],
        matter_id: UUID,
        document_id: UUID,
        payload: Payload = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> RecordResult:
        """document.viewed, document.downloaded, document.privilege_asserted, ..."""
        return await self.append(
            event_type,
            EventCategory.DATA_ACCESS,
            user_id,
            Correlation(matter_id=matter_id, document_id=document_id),
            payload,
            context,
        )

    async def log_user_management_event(
        self,
        event_type: str,
        admin_user_id: UUID,
        target_user_id: UUID,
        payload: Optional[Mapping[str, Any]] = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> RecordResult:
        """user.created, user.role_changed, user.disabled, ..."""
        data = {"target_user_id": str(target_user_id), **(payload or {})}
        return await self.append(
            event_type, EventCategory.ADMIN, admin_user_id, payload=data, context=context
        )

    async def log_system_event(
        self,
        event_type: str,
        user_id: Optional[UUID] = None,
        payload: Payload = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> RecordResult:
        """system.startup, system.config_changed, system.error, ..."""
        return await self.append(
            event_type, EventCategory.SYSTEM, user_id, payload=payload, context=context
        )

    async def log_package_event(
        self,
        event_type: str,
        user_id: Optional[UUID],
        matter_id: UUID,
        package_id: UUID,
        payload: Optional[Mapping[str, Any]] = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> RecordResult:
        """
        Echo an evidence package lifecycle event.

        The entry is correlated to the matter only. Correlating it to the
        extraction job would feed it into the next package's audit trail and
        change that package's content hash.
        """
        data = {"package_id": str(package_id), **(payload or {})}
        return await self.append(
            event_type,
            EventCategory.EVIDENCE_PACKAGE,
            user_id,
            Correlation(matter_id=matter_id),
            data,
            context,
        )
