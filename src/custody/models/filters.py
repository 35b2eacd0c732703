"""
Filter specifications shared by the services and the store backends.

Each filter is validated on construction, and each backend translates it
into its own predicate (bound SQL parameters or an in-memory check), so
the same object drives every read that depends on it.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from custody.config import settings
from custody.exceptions import ValidationError
from custody.models.audit import AuditEntry, EventCategory
from custody.models.entities import ApprovalStatus, ExtractedFact


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an offset-aware datetime to naive UTC. Naive values are taken as UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class AuditFilter:
    """
    Optional equality and range filters over audit entries.

    Unset fields do not restrict the result. The date range is inclusive
    on both ends.
    """

    matter_id: Optional[UUID] = None
    document_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    extraction_job_id: Optional[UUID] = None
    event_type: Optional[str] = None
    event_category: Optional[EventCategory] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.event_type is not None and not self.event_type.strip():
            raise ValidationError("event_type filter must not be blank")
        # Stored timestamps are naive UTC
        object.__setattr__(self, "start_date", naive_utc(self.start_date))
        object.__setattr__(self, "end_date", naive_utc(self.end_date))
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError(
                f"Invalid date range: start {self.start_date.isoformat()} "
                f"is after end {self.end_date.isoformat()}"
            )

    def matches(self, entry: AuditEntry) -> bool:
        """Check an entry against every set field."""
        if self.matter_id is not None and entry.matter_id != self.matter_id:
            return False
        if self.document_id is not None and entry.document_id != self.document_id:
            return False
        if self.user_id is not None and entry.user_id != self.user_id:
            return False
        if self.extraction_job_id is not None and entry.extraction_job_id != self.extraction_job_id:
            return False
        if self.event_type is not None and entry.event_type != self.event_type:
            return False
        if self.event_category is not None and entry.event_category != self.event_category:
            return False
        if self.start_date is not None and entry.timestamp < self.start_date:
            return False
        if self.end_date is not None and entry.timestamp > self.end_date:
            return False
        return True

    def to_dict(self) -> dict[str, str]:
        """Set fields only, for echoing in audit payloads."""
        values = {
            "matter_id": self.matter_id,
            "document_id": self.document_id,
            "user_id": self.user_id,
            "extraction_job_id": self.extraction_job_id,
            "event_type": self.event_type,
            "event_category": self.event_category.value if self.event_category else None,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }
        return {k: str(v) for k, v in values.items() if v is not None}


@dataclass(frozen=True)
class Page:
    """Limit/offset pagination, bounded by the configured page size cap."""

    limit: int = field(default_factory=lambda: settings.default_query_limit)
    offset: int = 0
    max_limit: int = field(default_factory=lambda: settings.max_query_limit)

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValidationError(f"limit must be at least 1, got {self.limit}")
        if self.limit > self.max_limit:
            raise ValidationError(f"limit {self.limit} exceeds maximum page size {self.max_limit}")
        if self.offset < 0:
            raise ValidationError(f"offset must not be negative, got {self.offset}")


@dataclass(frozen=True)
class FactFilter:
    """
    Filters applied to extracted facts before packaging.

    Every filter is optional and they compose with AND. An empty status or
    type list means no restriction, the same as leaving it unset.
    """

    min_confidence: Optional[float] = None
    approval_statuses: Optional[tuple[ApprovalStatus, ...]] = None
    fact_types: Optional[tuple[str, ...]] = None

    def __post_init__(self) -> None:
        if self.min_confidence is not None:
            if isinstance(self.min_confidence, bool) or not isinstance(self.min_confidence, (int, float)):
                raise ValidationError("min_confidence must be a number")
            if math.isnan(self.min_confidence):
                raise ValidationError("min_confidence must be a number")
            if not 0.0 <= self.min_confidence <= 1.0:
                raise ValidationError(
                    f"min_confidence must be between 0 and 1, got {self.min_confidence}"
                )

        if self.approval_statuses is not None:
            statuses = []
            for status in self.approval_statuses:
                try:
                    statuses.append(ApprovalStatus(status))
                except ValueError as e:
                    raise ValidationError(f"Unknown approval status: {status!r}") from e
            object.__setattr__(self, "approval_statuses", tuple(statuses) or None)

        if self.fact_types is not None:
            fact_types = tuple(t for t in self.fact_types if t)
            object.__setattr__(self, "fact_types", fact_types or None)

    def matches(self, fact: ExtractedFact) -> bool:
        if self.min_confidence is not None and fact.confidence_score < self.min_confidence:
            return False
        if self.approval_statuses is not None and fact.approved_status not in self.approval_statuses:
            return False
        if self.fact_types is not None and fact.fact_type not in self.fact_types:
            return False
        return True
