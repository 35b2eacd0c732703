"""
Audit log API routes.

Read-only access to the audit log for compliance and investigation.
Audit entries are immutable; there are no update or delete operations.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Query, Response

from custody.api.deps import Audit, Context, UserId
from custody.exceptions import ValidationError
from custody.models import AuditFilter, EventCategory, Page

router = APIRouter()


def _audit_filter(
    matter_id: Optional[UUID],
    document_id: Optional[UUID],
    user_id: Optional[UUID],
    extraction_job_id: Optional[UUID],
    event_type: Optional[str],
    event_category: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> AuditFilter:
    category = None
    if event_category is not None:
        try:
            category = EventCategory(event_category)
        except ValueError as e:
            raise ValidationError(f"Unknown event category: {event_category!r}") from e

    return AuditFilter(
        matter_id=matter_id,
        document_id=document_id,
        user_id=user_id,
        extraction_job_id=extraction_job_id,
        event_type=event_type,
        event_category=category,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("")
async def list_audit_entries(
    audit: Audit,
    user_id_header: UserId,
    context: Context,
    matter_id: Optional[UUID] = None,
    document_id: Optional[UUID] = None,
    user_id: Optional[UUID] = None,
    extraction_job_id: Optional[UUID] = None,
    event_type: Optional[str] = None,
    event_category: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: Optional[int] = Query(None, description="Page size, capped by configuration"),
    offset: int = Query(0, description="Entries to skip"),
) -> dict[str, Any]:
    """
    Search the audit log, newest first.

    Viewing the audit log is itself recorded as audit_log.viewed.
    """
    audit_filter = _audit_filter(
        matter_id, document_id, user_id, extraction_job_id,
        event_type, event_category, start_date, end_date,
    )
    page = Page(offset=offset) if limit is None else Page(limit=limit, offset=offset)

    result = await audit.query(audit_filter, page, viewer_id=user_id_header, context=context)
    return result.to_dict()


@router.get("/export.csv")
async def export_audit_entries(
    audit: Audit,
    user_id_header: UserId,
    context: Context,
    matter_id: Optional[UUID] = None,
    document_id: Optional[UUID] = None,
    user_id: Optional[UUID] = None,
    extraction_job_id: Optional[UUID] = None,
    event_type: Optional[str] = None,
    event_category: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Response:
    """Export every matching audit entry as CSV."""
    audit_filter = _audit_filter(
        matter_id, document_id, user_id, extraction_job_id,
        event_type, event_category, start_date, end_date,
    )
    content = await audit.export_csv(audit_filter, viewer_id=user_id_header, context=context)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="audit_log.csv"'},
    )


@router.get("/stats/{matter_id}")
async def get_audit_stats(matter_id: UUID, audit: Audit, user_id: UserId) -> dict[str, Any]:
    """Aggregate audit activity for a matter."""
    stats = await audit.stats(matter_id)
    return stats.to_dict()
