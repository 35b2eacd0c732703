"""
Chain-of-custody reconstruction for a single document.

A report ties together the document's privilege state, every audit event
recorded against it, the extractions made from it and the reviews of those
extractions, in the order they happened.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from custody.audit.recorder import AuditRecorder
from custody.config import settings
from custody.exceptions import LimitExceededError, NotFoundError
from custody.models import (
    SYSTEM_CONTEXT,
    AuditEntry,
    AuditFilter,
    ClientContext,
    Correlation,
    Document,
    EventCategory,
    Extraction,
    Matter,
    Review,
    User,
)
from custody.store.base import EntityStore, EventStore

logger = logging.getLogger(__name__)

PRIVILEGE_EVENT_PREFIXES = ("document.privilege_assert", "document.privilege_remove")


def is_privilege_change(event_type: str) -> bool:
    """True for privilege assert/remove events in either tense."""
    return event_type.startswith(PRIVILEGE_EVENT_PREFIXES)


def display_name(user: Optional[User], default: str = "System") -> str:
    if user is None:
        return default
    return user.full_name or user.email or default


@dataclass
class CustodyEvent:
    """An audit entry annotated with its actor's display name."""

    entry: AuditEntry
    user_name: str

    def to_dict(self) -> dict[str, Any]:
        return {**self.entry.to_dict(), "user_name": self.user_name}


@dataclass
class CustodyExtraction:
    extraction: Extraction
    extracted_by_name: Optional[str]
    reviewed_by_name: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.extraction.to_dict(),
            "extracted_by_name": self.extracted_by_name,
            "reviewed_by_name": self.reviewed_by_name,
        }


@dataclass
class CustodyReview:
    review: Review
    reviewer_name: str
    reviewer_bar_number: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.review.to_dict(),
            "reviewer_name": self.reviewer_name,
            "reviewer_bar_number": self.reviewer_bar_number,
        }


@dataclass
class CustodySummary:
    """Totals derived from the ordered event list."""

    total_events: int
    first_event: Optional[datetime]
    last_event: Optional[datetime]
    unique_users: int
    document_hash: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_events": self.total_events,
            "first_event": self.first_event.isoformat() if self.first_event else None,
            "last_event": self.last_event.isoformat() if self.last_event else None,
            "unique_users": self.unique_users,
            "document_hash": self.document_hash,
        }


@dataclass
class ChainOfCustodyReport:
    """Full custody history of one document."""

    document: Document
    matter: Optional[Matter]
    events: list[CustodyEvent]
    extractions: list[CustodyExtraction]
    reviews: list[CustodyReview]
    privilege_changes: list[CustodyEvent]
    summary: CustodySummary
    generated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        document = self.document.to_dict()
        if self.matter is not None:
            document["matter_number"] = self.matter.matter_number
            document["matter_name"] = self.matter.matter_name
        return {
            "document": document,
            "events": [e.to_dict() for e in self.events],
            "extractions": [e.to_dict() for e in self.extractions],
            "reviews": [r.to_dict() for r in self.reviews],
            "privilege_changes": [p.to_dict() for p in self.privilege_changes],
            "summary": self.summary.to_dict(),
            "generated_at": self.generated_at.isoformat(),
        }


def summarize(events: list[AuditEntry], document_hash: Optional[str]) -> CustodySummary:
    """
    Summarize an event list already ordered by timestamp ascending.

    First and last come from the list ends, never from a second read.
    """
    return CustodySummary(
        total_events=len(events),
        first_event=events[0].timestamp if events else None,
        last_event=events[-1].timestamp if events else None,
        unique_users=len({e.user_id for e in events if e.user_id is not None}),
        document_hash=document_hash,
    )


class ChainOfCustodyBuilder:
    """Builds chain-of-custody reports from the event and entity stores."""

    def __init__(
        self,
        events: EventStore,
        entities: EntityStore,
        recorder: Optional[AuditRecorder] = None,
        max_events: Optional[int] = None,
    ):
        self.events = events
        self.entities = entities
        self.recorder = recorder
        self.max_events = max_events or settings.max_custody_events

    async def build(
        self,
        document_id: UUID,
        viewer_id: Optional[UUID] = None,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> ChainOfCustodyReport:
        """
        Reconstruct the custody history of a document.

        Raises:
            NotFoundError: document does not exist
            LimitExceededError: more events than max_events
        """
        document = await self.entities.get_document(document_id)
        if document is None:
            raise NotFoundError("document", document_id)

        # One extra row tells us the cap was exceeded without counting
        entries, extractions, matter = await asyncio.gather(
            self.events.query(
                AuditFilter(document_id=document_id),
                limit=self.max_events + 1,
                ascending=True,
            ),
            self.entities.list_extractions(document_id),
            self.entities.get_matter(document.matter_id),
        )
        if len(entries) > self.max_events:
            logger.warning(f"Custody report for document {document_id} exceeds event cap")
            raise LimitExceededError("custody events", self.max_events, len(entries))

        reviews = await self.entities.list_reviews([e.id for e in extractions])

        user_ids = {e.user_id for e in entries if e.user_id}
        user_ids.update(x.extracted_by for x in extractions if x.extracted_by)
        user_ids.update(x.reviewed_by for x in extractions if x.reviewed_by)
        user_ids.update(r.reviewer_id for r in reviews)
        users = await self.entities.get_users(user_ids)

        custody_events = [
            CustodyEvent(entry=e, user_name=display_name(users.get(e.user_id) if e.user_id else None))
            for e in entries
        ]

        report = ChainOfCustodyReport(
            document=document,
            matter=matter,
            events=custody_events,
            extractions=[
                CustodyExtraction(
                    extraction=x,
                    extracted_by_name=display_name(users.get(x.extracted_by), None) if x.extracted_by else None,
                    reviewed_by_name=display_name(users.get(x.reviewed_by), None) if x.reviewed_by else None,
                )
                for x in extractions
            ],
            reviews=[
                CustodyReview(
                    review=r,
                    reviewer_name=display_name(users.get(r.reviewer_id), "Unknown"),
                    reviewer_bar_number=users[r.reviewer_id].bar_number if r.reviewer_id in users else None,
                )
                for r in reviews
            ],
            privilege_changes=[e for e in custody_events if is_privilege_change(e.entry.event_type)],
            summary=summarize(entries, document.file_hash),
        )

        logger.info(
            f"Built chain of custody for document {document_id}: "
            f"{report.summary.total_events} events, {len(extractions)} extractions, "
            f"{len(reviews)} reviews"
        )

        if viewer_id is not None and self.recorder is not None:
            await self.recorder.append(
                "custody.report_generated",
                EventCategory.DATA_ACCESS,
                viewer_id,
                Correlation(matter_id=document.matter_id, document_id=document_id),
                {"result_count": report.summary.total_events},
                context,
            )

        return report
