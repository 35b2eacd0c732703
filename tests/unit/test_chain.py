"""
Unit tests for chain-of-custody reports and privilege logs.
"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from custody.chain import ChainOfCustodyBuilder, PrivilegeLogGenerator
from custody.chain.builder import is_privilege_change, summarize
from custody.chain.privilege import attorney_label
from custody.exceptions import LimitExceededError, NotFoundError
from custody.models import AuditEntry, AuditFilter, Document, EventCategory, User

T1 = datetime(2025, 3, 2, 8, 0, 0)


def custody_entry(document, event_type, at, user_id=None) -> AuditEntry:
    return AuditEntry(
        event_type=event_type,
        event_category=EventCategory.DATA_ACCESS,
        event_data={},
        ip_address="10.0.0.2",
        user_agent="pytest",
        user_id=user_id,
        matter_id=document.matter_id,
        document_id=document.id,
        timestamp=at,
    )


class TestPrivilegeChangeDetection:
    """Tests for privilege event classification."""

    def test_assert_and_remove_in_either_tense(self):
        assert is_privilege_change("document.privilege_asserted")
        assert is_privilege_change("document.privilege_assert")
        assert is_privilege_change("document.privilege_removed")

    def test_other_events_are_not_privilege_changes(self):
        assert not is_privilege_change("document.viewed")
        assert not is_privilege_change("privilege_log.generated")


class TestSummary:
    """Tests for the custody summary."""

    def test_empty_event_list(self):
        summary = summarize([], "ab" * 32)
        assert summary.total_events == 0
        assert summary.first_event is None
        assert summary.last_event is None
        assert summary.unique_users == 0
        assert summary.document_hash == "ab" * 32


class TestChainOfCustodyBuilder:
    """Tests for building chain-of-custody reports."""

    @pytest.mark.asyncio
    async def test_summary_over_three_events(self, event_store, entity_store, document, attorney, paralegal):
        """Entries at t1<t2<t3 by {A, A, B} give 3 events and 2 users."""
        t1, t2, t3 = T1, T1 + timedelta(minutes=5), T1 + timedelta(minutes=9)
        # Inserted out of order; the report must still be chronological
        await event_store.append(custody_entry(document, "document.downloaded", t3, paralegal.id))
        await event_store.append(custody_entry(document, "document.uploaded", t1, attorney.id))
        await event_store.append(custody_entry(document, "document.viewed", t2, attorney.id))

        report = await ChainOfCustodyBuilder(event_store, entity_store).build(document.id)

        assert report.summary.total_events == 3
        assert report.summary.unique_users == 2
        assert report.summary.first_event == t1
        assert report.summary.last_event == t3
        assert report.summary.first_event <= report.summary.last_event
        assert report.summary.document_hash == document.file_hash
        assert [e.entry.timestamp for e in report.events] == [t1, t2, t3]

    @pytest.mark.asyncio
    async def test_unknown_document_raises(self, event_store, entity_store):
        with pytest.raises(NotFoundError):
            await ChainOfCustodyBuilder(event_store, entity_store).build(uuid4())

    @pytest.mark.asyncio
    async def test_actor_names_and_system_events(self, event_store, entity_store, document, attorney):
        await event_store.append(custody_entry(document, "document.viewed", T1, attorney.id))
        await event_store.append(custody_entry(document, "document.ocr_completed", T1 + timedelta(minutes=1)))

        report = await ChainOfCustodyBuilder(event_store, entity_store).build(document.id)

        assert [e.user_name for e in report.events] == ["Jane Doe", "System"]
        assert report.summary.unique_users == 1

    @pytest.mark.asyncio
    async def test_extractions_and_reviews(self, event_store, entity_store, document, extraction, review):
        report = await ChainOfCustodyBuilder(event_store, entity_store).build(document.id)

        assert len(report.extractions) == 1
        assert report.extractions[0].extracted_by_name == "Sam Lee"
        assert report.extractions[0].reviewed_by_name == "Jane Doe"
        assert len(report.reviews) == 1
        assert report.reviews[0].reviewer_name == "Jane Doe"
        assert report.reviews[0].reviewer_bar_number == "CA-123456"

    @pytest.mark.asyncio
    async def test_privilege_changes_sublist(self, event_store, entity_store, document, attorney):
        await event_store.append(custody_entry(document, "document.viewed", T1, attorney.id))
        await event_store.append(
            custody_entry(document, "document.privilege_asserted", T1 + timedelta(minutes=1), attorney.id)
        )
        await event_store.append(
            custody_entry(document, "document.privilege_removed", T1 + timedelta(minutes=2), attorney.id)
        )

        report = await ChainOfCustodyBuilder(event_store, entity_store).build(document.id)

        assert [p.entry.event_type for p in report.privilege_changes] == [
            "document.privilege_asserted",
            "document.privilege_removed",
        ]

    @pytest.mark.asyncio
    async def test_report_includes_matter(self, event_store, entity_store, document, matter):
        data = (await ChainOfCustodyBuilder(event_store, entity_store).build(document.id)).to_dict()

        assert data["document"]["matter_number"] == "2025-CV-0042"
        assert data["document"]["matter_name"] == "Acme Corp v. Globex Inc."
        assert data["document"]["attorney_client_privilege"] is True

    @pytest.mark.asyncio
    async def test_event_cap(self, event_store, entity_store, document):
        for m in range(4):
            await event_store.append(custody_entry(document, "document.viewed", T1 + timedelta(minutes=m)))

        builder = ChainOfCustodyBuilder(event_store, entity_store, max_events=3)

        with pytest.raises(LimitExceededError):
            await builder.build(document.id)

    @pytest.mark.asyncio
    async def test_viewing_is_logged(self, event_store, entity_store, recorder, document, attorney):
        builder = ChainOfCustodyBuilder(event_store, entity_store, recorder)

        await builder.build(document.id, viewer_id=attorney.id)

        logged = await event_store.query(AuditFilter(event_type="custody.report_generated"))
        assert len(logged) == 1
        assert logged[0].document_id == document.id


class TestPrivilegeLog:
    """Tests for privilege log generation."""

    def test_attorney_label(self):
        assert attorney_label(User(first_name="Jane", last_name="Doe", bar_number="1")) == "Jane Doe (Bar: 1)"
        assert attorney_label(User(first_name="Sam", last_name="Lee")) == "Sam Lee"
        assert attorney_label(None) == "Unknown"

    @pytest.mark.asyncio
    async def test_lists_privileged_documents_only(self, entity_store, matter, document, attorney, paralegal):
        later = T1 + timedelta(days=1)
        work_product = entity_store.add_document(
            Document(matter_id=matter.id, file_name="memo.docx", file_hash=None,
                     work_product=True, uploaded_by=attorney.id, created_at=later)
        )
        entity_store.add_document(
            Document(matter_id=matter.id, file_name="public.pdf", file_hash=None, created_at=later)
        )
        entity_store.add_document(
            Document(matter_id=matter.id, file_name="deleted.pdf", file_hash=None,
                     attorney_client_privilege=True, created_at=later, deleted_at=later)
        )

        log = await PrivilegeLogGenerator(entity_store).build(matter.id, attorney.id)

        assert [e.document.id for e in log.entries] == [document.id, work_product.id]
        first = log.entries[0]
        assert first.uploaded_by_name == "Sam Lee"
        assert first.privileged_by_name == "Jane Doe"
        assert first.privileged_by_bar_number == "CA-123456"
        assert first.privilege_basis == ["attorney_client_privilege"]
        assert log.entries[1].privileged_by_name is None
        assert log.generated_by == "Jane Doe (Bar: CA-123456)"

    @pytest.mark.asyncio
    async def test_unknown_matter_raises(self, entity_store, attorney):
        with pytest.raises(NotFoundError):
            await PrivilegeLogGenerator(entity_store).build(uuid4(), attorney.id)

    @pytest.mark.asyncio
    async def test_generation_is_logged(self, entity_store, event_store, recorder, matter, document, attorney):
        await PrivilegeLogGenerator(entity_store, recorder).build(matter.id, attorney.id)

        logged = await event_store.query(AuditFilter(event_type="privilege_log.generated"))
        assert logged[0].matter_id == matter.id
        assert logged[0].event_data["result_count"] == 1
