"""
Pytest configuration and shared fixtures for custody tests.

Every fixture is synchronous: the in-memory stores are seeded through their
add_* methods, so tests can build on them without an event loop.
"""

from datetime import datetime, timedelta

import pytest

from custody.audit import AuditDiagnostics, AuditRecorder
from custody.models import (
    ApprovalStatus,
    Document,
    ExtractedFact,
    Extraction,
    ExtractionJob,
    JobReview,
    Matter,
    Review,
    User,
)
from custody.store import InMemoryDocumentStorage, InMemoryEntityStore, InMemoryEventStore

BASE_TIME = datetime(2025, 3, 1, 9, 0, 0)
DOCUMENT_BYTES = b"%PDF-1.7 Master services agreement between Acme Corp and Globex Inc."


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def entity_store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def document_storage() -> InMemoryDocumentStorage:
    return InMemoryDocumentStorage()


@pytest.fixture
def diagnostics() -> AuditDiagnostics:
    return AuditDiagnostics()


@pytest.fixture
def recorder(event_store, diagnostics) -> AuditRecorder:
    """Recorder writing to the in-memory event store."""
    return AuditRecorder(event_store, diagnostics)


@pytest.fixture
def attorney(entity_store) -> User:
    """Licensed attorney with a bar number."""
    return entity_store.add_user(
        User(first_name="Jane", last_name="Doe", email="jane.doe@firm.example", bar_number="CA-123456")
    )


@pytest.fixture
def paralegal(entity_store) -> User:
    return entity_store.add_user(
        User(first_name="Sam", last_name="Lee", email="sam.lee@firm.example")
    )


@pytest.fixture
def matter(entity_store) -> Matter:
    return entity_store.add_matter(
        Matter(matter_number="2025-CV-0042", matter_name="Acme Corp v. Globex Inc.")
    )


@pytest.fixture
def document(entity_store, document_storage, matter, paralegal, attorney) -> Document:
    """Privileged document whose stored bytes match its recorded hash."""
    file_hash = document_storage.put("matters/acme/msa.pdf", DOCUMENT_BYTES)
    return entity_store.add_document(
        Document(
            matter_id=matter.id,
            file_name="msa.pdf",
            file_hash=file_hash,
            storage_key="matters/acme/msa.pdf",
            file_size=len(DOCUMENT_BYTES),
            document_type="contract",
            uploaded_by=paralegal.id,
            attorney_client_privilege=True,
            privileged_by=attorney.id,
            created_at=BASE_TIME,
            updated_at=BASE_TIME,
        )
    )


@pytest.fixture
def extraction(entity_store, document, paralegal, attorney) -> Extraction:
    return entity_store.add_extraction(
        Extraction(
            document_id=document.id,
            extracted_data={"parties": ["Acme Corp", "Globex Inc."]},
            extracted_by=paralegal.id,
            reviewed_by=attorney.id,
            source_citations=[{"page": 1}],
            created_at=BASE_TIME + timedelta(hours=1),
        )
    )


@pytest.fixture
def review(entity_store, extraction, attorney) -> Review:
    return entity_store.add_review(
        Review(
            extraction_id=extraction.id,
            reviewer_id=attorney.id,
            field_approvals={"parties": "approved"},
            reviewed_at=BASE_TIME + timedelta(hours=2),
        )
    )


@pytest.fixture
def job(entity_store, matter, document) -> ExtractionJob:
    return entity_store.add_extraction_job(
        ExtractionJob(
            matter_id=matter.id,
            document_id=document.id,
            model_name="extractor-v2",
            prompt_template_id="contract-facts",
            started_at=BASE_TIME + timedelta(hours=1),
            completed_at=BASE_TIME + timedelta(hours=1, minutes=5),
        )
    )


@pytest.fixture
def facts(entity_store, job, attorney) -> list[ExtractedFact]:
    """Three facts, oldest first: approved, pending and rejected."""
    seeded = [
        ExtractedFact(
            extraction_job_id=job.id,
            fact_type="party",
            fact_text='Acme Corp, a "Delaware" corporation',
            source_location="page 1, paragraph 1",
            confidence_score=0.95,
            extraction_timestamp=BASE_TIME + timedelta(hours=1, minutes=1),
            approved_status=ApprovalStatus.APPROVED,
            approved_by=attorney.id,
            approved_at=BASE_TIME + timedelta(hours=3),
        ),
        ExtractedFact(
            extraction_job_id=job.id,
            fact_type="date",
            fact_text="Effective January 1, 2025",
            source_location="page 1, paragraph 2",
            confidence_score=0.7,
            extraction_timestamp=BASE_TIME + timedelta(hours=1, minutes=2),
        ),
        ExtractedFact(
            extraction_job_id=job.id,
            fact_type="amount",
            fact_text="Fees of $1,000,000, payable quarterly",
            source_location="page 4, section 3.1",
            confidence_score=0.4,
            extraction_timestamp=BASE_TIME + timedelta(hours=1, minutes=3),
            approved_status=ApprovalStatus.REJECTED,
        ),
    ]
    return [entity_store.add_fact(f) for f in seeded]


@pytest.fixture
def job_review(entity_store, job, attorney) -> JobReview:
    return entity_store.add_job_review(
        JobReview(
            extraction_job_id=job.id,
            reviewed_by=attorney.id,
            review_status="approved",
            reviewed_at=BASE_TIME + timedelta(hours=3),
            review_notes="Facts verified against source.",
            approved_facts_count=1,
            rejected_facts_count=1,
        )
    )
