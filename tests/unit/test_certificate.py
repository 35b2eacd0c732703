"""
Unit tests for certificate numbers and issuance.
"""

import re
from datetime import date
from unittest.mock import patch
from uuid import uuid4

import pytest

from custody.evidence import CertificateIssuer, PackageContents, generate_certificate_number
from custody.evidence.certificate import attestation_text
from custody.exceptions import DuplicateCertificateError, NotFoundError
from custody.models import Certificate, EvidencePackageRecord, ExportFormat, PackageType


def seed_package(entity_store, job) -> EvidencePackageRecord:
    package = EvidencePackageRecord(
        matter_id=job.matter_id,
        extraction_job_id=job.id,
        package_type=PackageType.COURT_READY,
        export_format=ExportFormat.PDF,
        title="Court filing",
        file_hash="0" * 64,
        generated_by=uuid4(),
    )
    entity_store.packages[package.id] = package
    return package


class TestCertificateNumber:
    """Tests for certificate number generation."""

    def test_format(self):
        number = generate_certificate_number("CUSTODY-CERT", date(2025, 3, 14))
        assert re.fullmatch(r"CUSTODY-CERT-20250314-[A-Z0-9]{6}", number)

    def test_suffixes_vary(self):
        numbers = {generate_certificate_number("X") for _ in range(50)}
        assert len(numbers) > 1

    def test_attestation_counts(self):
        text = attestation_text("Jane Doe", 12, 3)
        assert text.startswith("I, Jane Doe, hereby certify that:")
        assert "12 extracted facts from 3 source document(s)" in text
        assert "SHA-256" in text


class TestCertificateIssuer:
    """Tests for issuing certificates."""

    @pytest.mark.asyncio
    async def test_issue_persists_and_links(self, entity_store, job, attorney):
        package = seed_package(entity_store, job)

        certificate = await CertificateIssuer(entity_store).issue(package.id, attorney.id, PackageContents())

        assert certificate.package_id == package.id
        assert certificate.chain_of_custody_verified
        assert certificate.ai_disclosure_included
        assert certificate.attorney_review_certified
        assert (await entity_store.get_certificate(certificate.id)) == certificate
        assert (await entity_store.get_package(package.id)).certificate_id == certificate.id

    @pytest.mark.asyncio
    async def test_custom_prefix(self, entity_store, job, attorney):
        package = seed_package(entity_store, job)

        certificate = await CertificateIssuer(entity_store, prefix="FIRM").issue(
            package.id, attorney.id, PackageContents()
        )

        assert certificate.certificate_number.startswith("FIRM-")

    @pytest.mark.asyncio
    async def test_second_certificate_rejected(self, entity_store, job, attorney):
        package = seed_package(entity_store, job)
        issuer = CertificateIssuer(entity_store)
        await issuer.issue(package.id, attorney.id, PackageContents())

        with pytest.raises(DuplicateCertificateError):
            await issuer.issue(package.id, attorney.id, PackageContents())
        assert len(entity_store.certificates) == 1

    @pytest.mark.asyncio
    async def test_unknown_package(self, entity_store, attorney):
        with pytest.raises(NotFoundError):
            await CertificateIssuer(entity_store).issue(uuid4(), attorney.id, PackageContents())

    @pytest.mark.asyncio
    async def test_collision_is_retried(self, entity_store, job, attorney):
        other = seed_package(entity_store, job)
        entity_store.certificates[uuid4()] = Certificate(
            package_id=other.id,
            certificate_number="CUSTODY-CERT-20250314-AAAAAA",
            issued_by=attorney.id,
            attestation_text="",
        )
        package = seed_package(entity_store, job)
        numbers = iter(["CUSTODY-CERT-20250314-AAAAAA", "CUSTODY-CERT-20250314-BBBBBB"])

        with patch(
            "custody.evidence.certificate.generate_certificate_number",
            side_effect=lambda prefix: next(numbers),
        ):
            certificate = await CertificateIssuer(entity_store).issue(package.id, attorney.id, PackageContents())

        assert certificate.certificate_number == "CUSTODY-CERT-20250314-BBBBBB"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, entity_store, job, attorney):
        other = seed_package(entity_store, job)
        entity_store.certificates[uuid4()] = Certificate(
            package_id=other.id,
            certificate_number="CUSTODY-CERT-20250314-AAAAAA",
            issued_by=attorney.id,
            attestation_text="",
        )
        package = seed_package(entity_store, job)

        with patch(
            "custody.evidence.certificate.generate_certificate_number",
            return_value="CUSTODY-CERT-20250314-AAAAAA",
        ):
            with pytest.raises(DuplicateCertificateError):
                await CertificateIssuer(entity_store, max_attempts=3).issue(
                    package.id, attorney.id, PackageContents()
                )

        assert (await entity_store.get_package(package.id)).certificate_id is None
