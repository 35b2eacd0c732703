"""
Audit log records.

Entries are frozen: once written they are never updated or deleted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4


class EventCategory(str, Enum):
    """Top-level category of an audit event."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    DATA_ACCESS = "data_access"
    ADMIN = "admin"
    SYSTEM = "system"
    EVIDENCE_PACKAGE = "evidence_package"

    @property
    def is_critical(self) -> bool:
        """Critical categories must never lose an event silently."""
        return self in (EventCategory.AUTHENTICATION, EventCategory.AUTHORIZATION)


@dataclass(frozen=True)
class ClientContext:
    """Where a request came from."""

    ip_address: str = "system"
    user_agent: str = "internal"


SYSTEM_CONTEXT = ClientContext()


@dataclass(frozen=True)
class Correlation:
    """Entity ids an audit event is attached to."""

    matter_id: Optional[UUID] = None
    document_id: Optional[UUID] = None
    extraction_job_id: Optional[UUID] = None


@dataclass(frozen=True)
class AuditEntry:
    """A single immutable audit event."""

    event_type: str
    event_category: EventCategory
    event_data: dict[str, Any]
    ip_address: str
    user_agent: str
    user_id: Optional[UUID] = None
    matter_id: Optional[UUID] = None
    document_id: Optional[UUID] = None
    extraction_job_id: Optional[UUID] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)
    id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": str(self.id),
            "event_type": self.event_type,
            "event_category": self.event_category.value,
            "user_id": str(self.user_id) if self.user_id else None,
            "matter_id": str(self.matter_id) if self.matter_id else None,
            "document_id": str(self.document_id) if self.document_id else None,
            "extraction_job_id": str(self.extraction_job_id) if self.extraction_job_id else None,
            "event_data": self.event_data,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class AuditStats:
    """Aggregate audit activity for one matter."""

    total_events: int = 0
    unique_users: int = 0
    document_events: int = 0
    extraction_events: int = 0
    privilege_events: int = 0
    first_event: Optional[datetime] = None
    last_event: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_events": self.total_events,
            "unique_users": self.unique_users,
            "document_events": self.document_events,
            "extraction_events": self.extraction_events,
            "privilege_events": self.privilege_events,
            "first_event": self.first_event.isoformat() if self.first_event else None,
            "last_event": self.last_event.isoformat() if self.last_event else None,
        }
