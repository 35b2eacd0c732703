"""
Unit tests for audit retrieval, statistics and CSV export.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from custody.audit import AuditQuery, format_audit_csv, parse_audit_csv
from custody.audit.query import AUDIT_CSV_HEADERS
from custody.exceptions import LimitExceededError, ValidationError
from custody.models import AuditEntry, AuditFilter, EventCategory, Page

T0 = datetime(2025, 3, 1, 12, 0, 0)


def make_entry(event_type="document.viewed", minutes=0, **kwargs) -> AuditEntry:
    category = kwargs.pop("event_category", EventCategory.DATA_ACCESS)
    return AuditEntry(
        event_type=event_type,
        event_category=category,
        event_data=kwargs.pop("event_data", {}),
        ip_address=kwargs.pop("ip_address", "10.0.0.1"),
        user_agent="pytest",
        timestamp=T0 + timedelta(minutes=minutes),
        **kwargs,
    )


class TestAuditFilter:
    """Tests for filter validation."""

    def test_inverted_date_range_rejected(self):
        with pytest.raises(ValidationError):
            AuditFilter(start_date=T0, end_date=T0 - timedelta(seconds=1))

    def test_blank_event_type_rejected(self):
        with pytest.raises(ValidationError):
            AuditFilter(event_type="  ")

    def test_aware_dates_become_naive_utc(self):
        audit_filter = AuditFilter(
            start_date=datetime(2025, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2))),
            end_date=datetime(2025, 3, 2, tzinfo=timezone.utc),
        )

        assert audit_filter.start_date == datetime(2025, 3, 1, 12, 0)
        assert audit_filter.end_date == datetime(2025, 3, 2)

    def test_mixed_aware_and_naive_range(self):
        with pytest.raises(ValidationError):
            AuditFilter(start_date=datetime(2025, 3, 2, tzinfo=timezone.utc), end_date=datetime(2025, 3, 1))

    def test_to_dict_lists_set_fields_only(self):
        matter_id = uuid4()
        assert AuditFilter(matter_id=matter_id).to_dict() == {"matter_id": str(matter_id)}


class TestPage:
    """Tests for pagination bounds."""

    def test_zero_limit_rejected(self):
        with pytest.raises(ValidationError):
            Page(limit=0)

    def test_limit_above_cap_rejected(self):
        with pytest.raises(ValidationError):
            Page(limit=51, max_limit=50)

    def test_negative_offset_rejected(self):
        with pytest.raises(ValidationError):
            Page(limit=10, offset=-1)


class TestAuditQuery:
    """Tests for filtered, paginated reads."""

    @pytest.mark.asyncio
    async def test_unfiltered_returns_everything_newest_first(self, event_store):
        inserted = [make_entry(minutes=m) for m in (5, 1, 3, 2, 4)]
        for entry in inserted:
            await event_store.append(entry)

        page = await AuditQuery(event_store).query()

        assert page.total_count == len(inserted)
        timestamps = [e.timestamp for e in page.entries]
        assert timestamps == sorted(timestamps, reverse=True)
        assert {e.id for e in page.entries} == {e.id for e in inserted}

    @pytest.mark.asyncio
    async def test_equal_timestamps_newest_insert_first(self, event_store):
        first = make_entry(minutes=0)
        second = make_entry(minutes=0)
        await event_store.append(first)
        await event_store.append(second)

        page = await AuditQuery(event_store).query()

        assert [e.id for e in page.entries] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_count_uses_same_filter_as_page(self, event_store):
        matter_id = uuid4()
        for m in range(7):
            await event_store.append(make_entry(minutes=m, matter_id=matter_id))
        for m in range(3):
            await event_store.append(make_entry(minutes=m, matter_id=uuid4()))

        page = await AuditQuery(event_store).query(
            AuditFilter(matter_id=matter_id), Page(limit=5, offset=0)
        )

        assert len(page.entries) == 5
        assert page.total_count == 7
        assert page.has_more is True
        assert all(e.matter_id == matter_id for e in page.entries)

    @pytest.mark.asyncio
    async def test_offset_pages_do_not_overlap(self, event_store):
        for m in range(6):
            await event_store.append(make_entry(minutes=m))
        query = AuditQuery(event_store)

        first = await query.query(page=Page(limit=3, offset=0))
        second = await query.query(page=Page(limit=3, offset=3))

        assert not {e.id for e in first.entries} & {e.id for e in second.entries}
        assert second.has_more is False

    @pytest.mark.asyncio
    async def test_filters_compose(self, event_store):
        user_id, document_id = uuid4(), uuid4()
        wanted = make_entry("document.downloaded", minutes=10, user_id=user_id, document_id=document_id)
        await event_store.append(wanted)
        await event_store.append(make_entry("document.viewed", minutes=11, user_id=user_id, document_id=document_id))
        await event_store.append(make_entry("document.downloaded", minutes=12, user_id=uuid4(), document_id=document_id))
        await event_store.append(make_entry("document.downloaded", minutes=30, user_id=user_id, document_id=document_id))

        page = await AuditQuery(event_store).query(
            AuditFilter(
                user_id=user_id,
                event_type="document.downloaded",
                start_date=T0,
                end_date=T0 + timedelta(minutes=20),
            )
        )

        assert [e.id for e in page.entries] == [wanted.id]
        assert page.total_count == 1

    @pytest.mark.asyncio
    async def test_date_range_is_inclusive(self, event_store):
        edge = make_entry(minutes=10)
        await event_store.append(edge)

        page = await AuditQuery(event_store).query(
            AuditFilter(start_date=edge.timestamp, end_date=edge.timestamp)
        )

        assert page.total_count == 1

    @pytest.mark.asyncio
    async def test_aware_date_range_matches_stored_entries(self, event_store):
        entry = make_entry(minutes=10)
        await event_store.append(entry)

        page = await AuditQuery(event_store).query(
            AuditFilter(
                start_date=datetime(2025, 3, 1, 12, 10, tzinfo=timezone.utc),
                end_date=datetime(2025, 3, 1, 14, 10, tzinfo=timezone(timedelta(hours=2))),
            )
        )

        assert [e.id for e in page.entries] == [entry.id]

    @pytest.mark.asyncio
    async def test_stored_payload_is_isolated(self, event_store):
        payload = {"fields": ["title"]}
        entry = make_entry(event_data=payload)
        await event_store.append(entry)

        payload["fields"].append("author")
        entry.event_data["tampered"] = True
        first = await event_store.query(AuditFilter())
        first[0].event_data["fields"].clear()

        again = await event_store.query(AuditFilter())
        assert again[0].event_data == {"fields": ["title"]}

    @pytest.mark.asyncio
    async def test_viewing_is_meta_logged(self, event_store, recorder):
        viewer = uuid4()
        await event_store.append(make_entry())

        page = await AuditQuery(event_store, recorder=recorder).query(viewer_id=viewer)

        assert page.total_count == 1
        entries = await event_store.query(AuditFilter(event_type="audit_log.viewed"))
        assert len(entries) == 1
        assert entries[0].user_id == viewer
        assert entries[0].event_data["result_count"] == 1

    @pytest.mark.asyncio
    async def test_anonymous_query_not_meta_logged(self, event_store, recorder):
        await AuditQuery(event_store, recorder=recorder).query()
        assert len(event_store) == 0


class TestAuditStats:
    """Tests for per-matter statistics."""

    @pytest.mark.asyncio
    async def test_stats_for_matter(self, event_store):
        matter_id, doc_a, doc_b = uuid4(), uuid4(), uuid4()
        user_a, user_b = uuid4(), uuid4()
        await event_store.append(make_entry("document.viewed", 1, matter_id=matter_id, document_id=doc_a, user_id=user_a))
        await event_store.append(make_entry("document.viewed", 2, matter_id=matter_id, document_id=doc_a, user_id=user_b))
        await event_store.append(make_entry("extraction.completed", 3, matter_id=matter_id, document_id=doc_b))
        await event_store.append(
            make_entry("document.privilege_asserted", 4, matter_id=matter_id, document_id=doc_b, user_id=user_a)
        )
        await event_store.append(make_entry("document.viewed", 5, matter_id=uuid4(), document_id=uuid4()))

        stats = await AuditQuery(event_store).stats(matter_id)

        assert stats.total_events == 4
        assert stats.unique_users == 2
        assert stats.document_events == 2
        assert stats.extraction_events == 1
        assert stats.privilege_events == 1
        assert stats.first_event == T0 + timedelta(minutes=1)
        assert stats.last_event == T0 + timedelta(minutes=4)

    @pytest.mark.asyncio
    async def test_stats_for_empty_matter(self, event_store):
        stats = await AuditQuery(event_store).stats(uuid4())
        assert stats.total_events == 0
        assert stats.first_event is None


class TestAuditCsv:
    """Tests for audit CSV export."""

    def test_header_and_quoting(self):
        entry = make_entry(event_data={"note": 'said "hello", then left'})

        content = format_audit_csv([entry])
        lines = content.splitlines()

        assert lines[0] == ",".join(AUDIT_CSV_HEADERS)
        assert lines[1].startswith('"')
        assert '""hello""' in lines[1]

    def test_actorless_entry_shows_system(self):
        rows = parse_audit_csv(format_audit_csv([make_entry()]))
        assert rows[0]["User"] == "System"

    def test_round_trip(self):
        user_id, document_id = uuid4(), uuid4()
        entry = make_entry(user_id=user_id, document_id=document_id, event_data={"file_name": "a,b.pdf"})

        rows = parse_audit_csv(format_audit_csv([entry], {user_id: "Jane Doe"}))

        assert rows == [{
            "Timestamp": entry.timestamp.isoformat(),
            "Event Type": "document.viewed",
            "User": "Jane Doe",
            "Category": "data_access",
            "Resource ID": str(document_id),
            "IP Address": "10.0.0.1",
            "Details": '{"file_name": "a,b.pdf"}',
        }]

    @pytest.mark.asyncio
    async def test_export_resolves_names_and_meta_logs(self, event_store, entity_store, recorder, attorney):
        await event_store.append(make_entry(user_id=attorney.id))

        content = await AuditQuery(event_store, entity_store, recorder).export_csv(viewer_id=attorney.id)

        rows = parse_audit_csv(content)
        assert rows[0]["User"] == "Jane Doe"
        exported = await event_store.query(AuditFilter(event_type="audit_log.exported"))
        assert exported[0].event_data["export_format"] == "csv"

    @pytest.mark.asyncio
    async def test_export_over_cap_rejected(self, event_store):
        for m in range(3):
            await event_store.append(make_entry(minutes=m))

        with pytest.raises(LimitExceededError):
            await AuditQuery(event_store, max_export_rows=2).export_csv()
