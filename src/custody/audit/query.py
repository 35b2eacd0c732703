"""
Audit log retrieval.

Filtered, paginated reads over the event store, per-matter statistics and
CSV export of the audit trail.
"""

import csv
import io
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from custody.audit.recorder import AuditRecorder
from custody.config import settings
from custody.exceptions import LimitExceededError
from custody.models import (
    SYSTEM_CONTEXT,
    AuditEntry,
    AuditFilter,
    AuditStats,
    ClientContext,
    Correlation,
    EventCategory,
    Page,
)
from custody.store.base import EntityStore, EventStore

logger = logging.getLogger(__name__)

AUDIT_CSV_HEADERS = [
    "Timestamp",
    "Event Type",
    "User",
    "Category",
    "Resource ID",
    "IP Address",
    "Details",
]


@dataclass
class AuditPage:
    """One page of audit entries and the total matching the same filter."""

    entries: list[AuditEntry]
    total_count: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.entries) < self.total_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "total_count": self.total_count,
            "limit": self.limit,
            "offset": self.offset,
            "has_more": self.has_more,
        }


class AuditQuery:
    """Read side of the audit log."""

    def __init__(
        self,
        store: EventStore,
        entities: Optional[EntityStore] = None,
        recorder: Optional[AuditRecorder] = None,
        max_export_rows: Optional[int] = None,
    ):
        self.store = store
        self.entities = entities
        self.recorder = recorder
        self.max_export_rows = max_export_rows or settings.max_custody_events

    async def query(
        self,
        audit_filter: Optional[AuditFilter] = None,
        page: Optional[Page] = None,
        viewer_id: Optional[UUID] = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> AuditPage:
        """
        Return one page of entries, newest first, with the total count.

        The page and the count are two reads built from the same filter
        predicate. Entries inserted between the two reads can make the count
        differ from what the page saw; the difference is bounded by inserts
        during that window. Audit entries are never updated or deleted, so
        no other divergence is possible.

        When a viewer is given, the read itself is recorded as
        ``audit_log.viewed``.
        """
        audit_filter = audit_filter or AuditFilter()
        page = page or Page()

        entries = await self.store.query(audit_filter, page.limit, page.offset)
        total = await self.store.count(audit_filter)

        if viewer_id is not None and self.recorder is not None:
            await self.recorder.append(
                "audit_log.viewed",
                EventCategory.DATA_ACCESS,
                viewer_id,
                Correlation(
                    matter_id=audit_filter.matter_id,
                    document_id=audit_filter.document_id,
                ),
                {"filters": audit_filter.to_dict(), "result_count": len(entries)},
                context,
            )

        return AuditPage(entries=entries, total_count=total, limit=page.limit, offset=page.offset)

    async def stats(self, matter_id: UUID) -> AuditStats:
        """Aggregate audit activity for a matter."""
        return await self.store.stats(matter_id)

    async def export_csv(
        self,
        audit_filter: Optional[AuditFilter] = None,
        viewer_id: Optional[UUID] = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> str:
        """
        Export every matching entry as CSV, newest first.

        Raises:
            LimitExceededError: more entries match than max_export_rows
        """
        audit_filter = audit_filter or AuditFilter()
        total = await self.store.count(audit_filter)
        if total > self.max_export_rows:
            raise LimitExceededError("audit export", self.max_export_rows, total)

        entries = await self.store.query(audit_filter, self.max_export_rows, 0)
        names = await self._user_names(entries)
        content = format_audit_csv(entries, names)

        if viewer_id is not None and self.recorder is not None:
            await self.recorder.append(
                "audit_log.exported",
                EventCategory.DATA_ACCESS,
                viewer_id,
                Correlation(
                    matter_id=audit_filter.matter_id,
                    document_id=audit_filter.document_id,
                ),
                {
                    "filters": audit_filter.to_dict(),
                    "result_count": len(entries),
                    "export_format": "csv",
                },
                context,
            )

        return content

    async def _user_names(self, entries: list[AuditEntry]) -> dict[UUID, str]:
        if self.entities is None:
            return {}
        users = await self.entities.get_users(e.user_id for e in entries if e.user_id)
        return {uid: user.full_name or user.email for uid, user in users.items()}


def format_audit_csv(entries: list[AuditEntry], user_names: Optional[dict[UUID, str]] = None) -> str:
    """
    Render audit entries as CSV.

    The header row is bare; every data cell is quoted with embedded quotes
    doubled. Actor-less entries show "System".
    """
    user_names = user_names or {}
    output = io.StringIO()
    output.write(",".join(AUDIT_CSV_HEADERS) + "\n")
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")

    for entry in entries:
        if entry.user_id is None:
            user = "System"
        else:
            user = user_names.get(entry.user_id, str(entry.user_id))
        resource_id = entry.document_id or entry.matter_id or entry.extraction_job_id or ""
        writer.writerow([
            entry.timestamp.isoformat(),
            entry.event_type,
            user,
            entry.event_category.value,
            str(resource_id),
            entry.ip_address,
            json.dumps(entry.event_data, sort_keys=True, ensure_ascii=False),
        ])

    return output.getvalue()


def parse_audit_csv(content: str) -> list[dict[str, str]]:
    """Read an audit CSV export back into header-keyed rows."""
    reader = csv.DictReader(io.StringIO(content))
    return [dict(row) for row in reader]
