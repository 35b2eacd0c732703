"""
Unit tests for evidence package assembly and canonical hashing.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest

from custody.evidence import (
    EvidencePackageAssembler,
    IncludeOptions,
    PackageOptions,
    canonical_dumps,
    content_hash,
    sha256_hex,
)
from custody.evidence.canonical import hashes_match, is_sha256_hex, snapshot_of
from custody.evidence.package import DISCLAIMERS
from custody.exceptions import DuplicateCertificateError, LimitExceededError, NotFoundError, ValidationError
from custody.models import (
    ApprovalStatus,
    AuditFilter,
    ContentType,
    Correlation,
    ExportFormat,
    FactFilter,
    PackageStatus,
    PackageType,
)


def options_for(job, package_type=PackageType.FULL_EVIDENCE, **kwargs) -> PackageOptions:
    return PackageOptions(
        matter_id=job.matter_id,
        extraction_job_id=job.id,
        package_type=package_type,
        title=kwargs.pop("title", "Acme v. Globex production"),
        include=kwargs.pop("include", IncludeOptions.everything()),
        **kwargs,
    )


class Color(Enum):
    RED = "red"


class TestCanonicalForm:
    """Tests for canonical serialization."""

    def test_key_order_does_not_matter(self):
        assert canonical_dumps({"b": 1, "a": {"y": 2, "x": 3}}) == canonical_dumps({"a": {"x": 3, "y": 2}, "b": 1})

    def test_compact_and_sorted(self):
        assert canonical_dumps({"b": [1, 2], "a": "é"}) == '{"a":"é","b":[1,2]}'

    def test_special_types(self):
        uid = UUID("12345678-1234-5678-1234-567812345678")
        data = {
            "when": datetime(2025, 1, 1, 12, 0),
            "id": uid,
            "amount": Decimal("10.50"),
            "color": Color.RED,
        }
        assert canonical_dumps(data) == (
            '{"amount":"10.50","color":"red","id":"12345678-1234-5678-1234-567812345678",'
            '"when":"2025-01-01T12:00:00"}'
        )

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            canonical_dumps({"x": float("nan")})

    def test_unknown_type_rejected(self):
        with pytest.raises(TypeError):
            canonical_dumps({"x": object()})

    def test_hash_helpers(self):
        digest = content_hash({"a": 1})
        assert is_sha256_hex(digest)
        assert digest == sha256_hex('{"a":1}')
        assert hashes_match(digest, digest.upper())
        assert not is_sha256_hex("abc")
        assert not is_sha256_hex(None)

    def test_digest_must_be_exact(self):
        digest = "a" * 64
        assert is_sha256_hex(digest)
        assert is_sha256_hex(digest.upper())
        assert not is_sha256_hex(digest + "\n")
        assert not is_sha256_hex(" " + digest)


class TestPackageOptions:
    """Tests for option validation."""

    def test_blank_title_rejected(self, job):
        with pytest.raises(ValidationError):
            options_for(job, title="   ")

    def test_unknown_package_type_rejected(self, job):
        with pytest.raises(ValidationError):
            options_for(job, package_type="everything")

    def test_strings_coerced_to_enums(self, job):
        options = options_for(job, package_type="court_ready", export_format="csv")
        assert options.package_type == PackageType.COURT_READY
        assert options.export_format == ExportFormat.CSV

    def test_inclusion_defaults_to_nothing(self):
        assert not any(IncludeOptions().to_dict().values())


class TestFactFilter:
    """Tests for fact filter validation."""

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValidationError):
            FactFilter(min_confidence=-0.1)

    def test_threshold_above_one_rejected(self):
        with pytest.raises(ValidationError):
            FactFilter(min_confidence=1.5)

    def test_nan_threshold_rejected(self):
        with pytest.raises(ValidationError):
            FactFilter(min_confidence=float("nan"))

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            FactFilter(approval_statuses=("approved", "maybe"))

    def test_empty_lists_mean_no_restriction(self):
        fact_filter = FactFilter(approval_statuses=(), fact_types=())
        assert fact_filter.approval_statuses is None
        assert fact_filter.fact_types is None


class TestAssembler:
    """Tests for evidence package generation."""

    @pytest.mark.asyncio
    async def test_identical_inputs_give_identical_hash(self, entity_store, event_store, job, facts, job_review):
        assembler = EvidencePackageAssembler(entity_store, event_store)

        first = await assembler.generate(options_for(job), uuid4())
        second = await assembler.generate(options_for(job), uuid4())

        assert first.package_id != second.package_id
        assert first.content_hash == second.content_hash

    @pytest.mark.asyncio
    async def test_hash_independent_of_export_format(self, entity_store, event_store, job, facts):
        assembler = EvidencePackageAssembler(entity_store, event_store)

        as_json = await assembler.generate(options_for(job, export_format=ExportFormat.JSON), uuid4())
        as_csv = await assembler.generate(options_for(job, export_format=ExportFormat.CSV), uuid4())

        assert as_json.content_hash == as_csv.content_hash
        assert as_json.export.content != as_csv.export.content

    @pytest.mark.asyncio
    async def test_hash_stable_with_echo_events(
        self, entity_store, event_store, recorder, job, facts, attorney
    ):
        """Package echo events must not feed the next package's audit trail."""
        assembler = EvidencePackageAssembler(entity_store, event_store, recorder)

        first = await assembler.generate(options_for(job), attorney.id)
        second = await assembler.generate(options_for(job), attorney.id)

        assert first.content_hash == second.content_hash

    @pytest.mark.asyncio
    async def test_hash_changes_with_data(self, entity_store, event_store, job, facts):
        assembler = EvidencePackageAssembler(entity_store, event_store)
        before = await assembler.generate(options_for(job), uuid4())

        facts[1].fact_text = "Effective February 1, 2025"
        after = await assembler.generate(options_for(job), uuid4())

        assert before.content_hash != after.content_hash

    @pytest.mark.asyncio
    async def test_json_export_is_hashed_form(self, entity_store, event_store, job, facts):
        generated = await EvidencePackageAssembler(entity_store, event_store).generate(options_for(job), uuid4())
        assert sha256_hex(generated.export.content) == generated.content_hash
        assert generated.record.file_hash == generated.content_hash

    @pytest.mark.asyncio
    async def test_payload_structure(self, entity_store, event_store, job, facts, job_review, document):
        generated = await EvidencePackageAssembler(entity_store, event_store).generate(options_for(job), uuid4())
        payload = generated.payload

        assert payload["disclaimer"] == DISCLAIMERS
        assert payload["package"]["package_type"] == "full_evidence"
        contents = payload["contents"]
        assert len(contents["extracted_facts"]) == 3
        assert [d["id"] for d in contents["source_documents"]] == [str(document.id)]
        assert [r["id"] for r in contents["review_records"]] == [str(job_review.id)]
        assert contents["extraction_metadata"]["model_name"] == "extractor-v2"
        assert payload["statistics"] == {
            "total_facts": 3,
            "approved_facts": 1,
            "total_documents": 1,
            "total_audit_entries": 0,
            "total_reviews": 1,
        }

    @pytest.mark.asyncio
    async def test_omitted_categories_are_empty(self, entity_store, event_store, job, facts, job_review):
        options = options_for(job, include=IncludeOptions(include_facts=True))

        generated = await EvidencePackageAssembler(entity_store, event_store).generate(options, uuid4())

        contents = generated.payload["contents"]
        assert len(contents["extracted_facts"]) == 3
        assert contents["source_documents"] == []
        assert contents["audit_trail"] == []
        assert contents["review_records"] == []
        assert contents["extraction_metadata"] == {}

    @pytest.mark.asyncio
    async def test_fact_filters_compose(self, entity_store, event_store, job, facts):
        options = options_for(
            job,
            filters=FactFilter(
                min_confidence=0.5,
                approval_statuses=(ApprovalStatus.APPROVED, ApprovalStatus.PENDING),
                fact_types=("party", "amount"),
            ),
        )

        generated = await EvidencePackageAssembler(entity_store, event_store).generate(options, uuid4())

        assert [f["id"] for f in generated.payload["contents"]["extracted_facts"]] == [str(facts[0].id)]

    @pytest.mark.asyncio
    async def test_zero_threshold_keeps_everything(self, entity_store, event_store, job, facts):
        options = options_for(job, filters=FactFilter(min_confidence=0.0))
        generated = await EvidencePackageAssembler(entity_store, event_store).generate(options, uuid4())
        assert generated.record.included_facts_count == 3

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, entity_store, event_store, job, facts):
        options = options_for(job, filters=FactFilter(min_confidence=0.7))
        generated = await EvidencePackageAssembler(entity_store, event_store).generate(options, uuid4())
        assert generated.record.included_facts_count == 2

    @pytest.mark.asyncio
    async def test_facts_newest_first(self, entity_store, event_store, job, facts):
        generated = await EvidencePackageAssembler(entity_store, event_store).generate(options_for(job), uuid4())
        ids = [f["id"] for f in generated.payload["contents"]["extracted_facts"]]
        assert ids == [str(f.id) for f in reversed(facts)]

    @pytest.mark.asyncio
    async def test_audit_trail_is_job_correlated(self, entity_store, event_store, recorder, job, facts, attorney):
        await recorder.append(
            "extraction.completed",
            "data_access",
            attorney.id,
            correlation=Correlation(matter_id=job.matter_id, extraction_job_id=job.id),
        )
        await recorder.log_system_event("system.startup")

        generated = await EvidencePackageAssembler(entity_store, event_store).generate(options_for(job), uuid4())

        trail = generated.payload["contents"]["audit_trail"]
        assert [e["event_type"] for e in trail] == ["extraction.completed"]

    @pytest.mark.asyncio
    async def test_snapshots_persisted_per_item(self, entity_store, event_store, job, facts, document):
        generated = await EvidencePackageAssembler(entity_store, event_store).generate(options_for(job), uuid4())

        snapshots = await entity_store.list_snapshots(generated.package_id)
        assert len(snapshots) == 4
        assert sum(1 for s in snapshots if s.content_type == ContentType.SOURCE_DOCUMENT) == 1
        for snapshot in snapshots:
            assert snapshot.content_hash == sha256_hex(snapshot.content_snapshot)
        document_snapshot = next(s for s in snapshots if s.content_id == document.id)
        assert document_snapshot.content_snapshot == snapshot_of(document)

    @pytest.mark.asyncio
    async def test_record_metadata(self, entity_store, event_store, job, facts):
        generated = await EvidencePackageAssembler(
            entity_store, event_store, generator_version="9.9.9"
        ).generate(options_for(job), uuid4())

        stored = await entity_store.get_package(generated.package_id)
        assert stored.status == PackageStatus.GENERATED
        assert stored.included_facts_count == 3
        assert stored.metadata["generator_version"] == "9.9.9"
        assert stored.metadata["include_options"]["include_facts"] is True
        assert "generated_at" in stored.metadata

    @pytest.mark.asyncio
    async def test_missing_job_raises(self, entity_store, event_store, matter):
        options = PackageOptions(
            matter_id=matter.id,
            extraction_job_id=uuid4(),
            package_type=PackageType.FACTS_ONLY,
            title="Missing",
        )
        with pytest.raises(NotFoundError):
            await EvidencePackageAssembler(entity_store, event_store).generate(options, uuid4())

    @pytest.mark.asyncio
    async def test_job_from_other_matter_rejected(self, entity_store, event_store, job):
        options = PackageOptions(
            matter_id=uuid4(),
            extraction_job_id=job.id,
            package_type=PackageType.FACTS_ONLY,
            title="Wrong matter",
        )
        with pytest.raises(ValidationError):
            await EvidencePackageAssembler(entity_store, event_store).generate(options, uuid4())

    @pytest.mark.asyncio
    async def test_fact_cap(self, entity_store, event_store, job, facts):
        assembler = EvidencePackageAssembler(entity_store, event_store, max_facts=2)
        with pytest.raises(LimitExceededError):
            await assembler.generate(options_for(job), uuid4())
        assert entity_store.packages == {}

    @pytest.mark.asyncio
    async def test_generation_is_logged(self, entity_store, event_store, recorder, job, facts, attorney):
        generated = await EvidencePackageAssembler(entity_store, event_store, recorder).generate(
            options_for(job), attorney.id
        )

        logged = await event_store.query(AuditFilter(event_type="evidence_package.generated"))
        assert len(logged) == 1
        assert logged[0].event_data["package_id"] == str(generated.package_id)
        assert logged[0].event_data["content_hash"] == generated.content_hash


class TestCertificateIssuance:
    """A certificate exists if and only if the package is court-ready."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "package_type",
        [PackageType.FULL_EVIDENCE, PackageType.AUDIT_ONLY, PackageType.FACTS_ONLY],
    )
    async def test_no_certificate_for_other_types(self, entity_store, event_store, job, facts, package_type):
        generated = await EvidencePackageAssembler(entity_store, event_store).generate(
            options_for(job, package_type=package_type), uuid4()
        )
        assert generated.certificate_id is None
        assert entity_store.certificates == {}

    @pytest.mark.asyncio
    async def test_court_ready_gets_certificate(self, entity_store, event_store, job, facts, document, attorney):
        generated = await EvidencePackageAssembler(entity_store, event_store).generate(
            options_for(job, package_type=PackageType.COURT_READY), attorney.id
        )

        assert generated.certificate_id is not None
        stored = await entity_store.get_package(generated.package_id)
        assert stored.certificate_id == generated.certificate_id
        assert stored.status == PackageStatus.GENERATED
        certificate = await entity_store.get_certificate(generated.certificate_id)
        assert "3 extracted facts from 1 source document(s)" in certificate.attestation_text
        assert certificate.attestation_text.startswith("I, Jane Doe, hereby certify")

    @pytest.mark.asyncio
    async def test_unissued_certificate_leaves_nothing_stored(self, entity_store, event_store, job, facts, attorney):
        assembler = EvidencePackageAssembler(entity_store, event_store)

        with patch.object(entity_store, "certificate_number_exists", AsyncMock(return_value=True)):
            with pytest.raises(DuplicateCertificateError):
                await assembler.generate(options_for(job, package_type=PackageType.COURT_READY), attorney.id)

        assert entity_store.packages == {}
        assert entity_store.snapshots == {}
        assert entity_store.certificates == {}
        assert await entity_store.list_packages(job.matter_id) == []

    @pytest.mark.asyncio
    async def test_certificate_number_taken_at_save(self, entity_store, event_store, job, facts, attorney):
        first = await EvidencePackageAssembler(entity_store, event_store).generate(
            options_for(job, package_type=PackageType.COURT_READY), attorney.id
        )
        taken = (await entity_store.get_certificate(first.certificate_id)).certificate_number

        # The number looks free when drafted but is gone by the time it is saved
        with patch("custody.evidence.certificate.generate_certificate_number", return_value=taken):
            with patch.object(entity_store, "certificate_number_exists", AsyncMock(side_effect=[False, True])):
                with pytest.raises(DuplicateCertificateError):
                    await EvidencePackageAssembler(entity_store, event_store).generate(
                        options_for(job, package_type=PackageType.COURT_READY), attorney.id
                    )

        assert list(entity_store.packages) == [first.package_id]
        assert list(entity_store.certificates) == [first.certificate_id]
