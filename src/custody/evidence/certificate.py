"""
Certificates of authenticity for court-ready evidence packages.
"""

import logging
import secrets
import string
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from custody.chain.builder import display_name
from custody.config import settings
from custody.evidence.options import PackageContents
from custody.exceptions import DuplicateCertificateError, NotFoundError
from custody.models import Certificate
from custody.store.base import EntityStore

logger = logging.getLogger(__name__)

SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 6

ATTESTATION_TEMPLATE = """\
I, {issuer}, hereby certify that:

1. This evidence package was generated using an AI-assisted legal technology platform.

2. All AI-extracted facts contained herein have been reviewed and approved by licensed attorney(s).

3. The chain of custody for all documents and data has been maintained throughout the extraction and review process.

4. Complete audit logs documenting all system actions, user interactions, and AI processing steps are included in this package.

5. AI assistance was used solely for factual extraction and organization. No legal opinions, conclusions, or strategic advice were generated by AI.

6. All extracted facts are verbatim quotes or direct references from source documents, with proper citations.

7. This package contains {fact_count} extracted facts from {document_count} source document(s).

8. All data integrity has been verified using cryptographic hashing (SHA-256).

This certificate is issued in accordance with legal and ethical standards governing the use of AI in legal practice."""


def generate_certificate_number(prefix: str, on: Optional[date] = None) -> str:
    """PREFIX-YYYYMMDD-XXXXXX with a random suffix over [A-Z0-9]."""
    on = on or datetime.utcnow().date()
    suffix = "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}-{on.strftime('%Y%m%d')}-{suffix}"


def attestation_text(issuer: str, fact_count: int, document_count: int) -> str:
    return ATTESTATION_TEMPLATE.format(
        issuer=issuer, fact_count=fact_count, document_count=document_count
    )


class CertificateIssuer:
    """
    Issues one certificate per court-ready package.

    The random suffix alone does not guarantee uniqueness, so every number
    is checked against issued certificates before use and regenerated on a
    collision. The store's unique constraint catches the remaining race.
    """

    def __init__(
        self,
        entities: EntityStore,
        prefix: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ):
        self.entities = entities
        self.prefix = prefix or settings.certificate_prefix
        self.max_attempts = max_attempts or settings.certificate_number_attempts

    async def allocate_number(self) -> str:
        """
        Draw a certificate number not yet issued.

        Raises:
            DuplicateCertificateError: no unique number within max_attempts
        """
        for attempt in range(1, self.max_attempts + 1):
            number = generate_certificate_number(self.prefix)
            if not await self.entities.certificate_number_exists(number):
                return number
            logger.warning(f"Certificate number collision on attempt {attempt}: {number}")

        raise DuplicateCertificateError(
            f"Could not allocate a unique certificate number in {self.max_attempts} attempts"
        )

    async def draft(
        self,
        package_id: UUID,
        issued_by: UUID,
        contents: PackageContents,
    ) -> Certificate:
        """
        Build a certificate for a package that is not stored yet.

        Nothing is persisted; the caller saves it together with the package.

        Raises:
            DuplicateCertificateError: no unique number within max_attempts
        """
        issuer = await self.entities.get_user(issued_by)
        text = attestation_text(
            display_name(issuer, str(issued_by)), len(contents.facts), len(contents.documents)
        )
        return Certificate(
            package_id=package_id,
            certificate_number=await self.allocate_number(),
            issued_by=issued_by,
            attestation_text=text,
        )

    async def issue(
        self,
        package_id: UUID,
        issued_by: UUID,
        contents: PackageContents,
    ) -> Certificate:
        """
        Issue and persist the certificate for a stored package.

        Raises:
            NotFoundError: package does not exist
            DuplicateCertificateError: package already certified, or no
                unique number found within max_attempts
        """
        package = await self.entities.get_package(package_id)
        if package is None:
            raise NotFoundError("evidence package", package_id)
        if package.certificate_id is not None:
            raise DuplicateCertificateError(f"Evidence package {package_id} already has a certificate")

        for attempt in range(1, self.max_attempts + 1):
            certificate = await self.draft(package_id, issued_by, contents)
            try:
                await self.entities.save_certificate(certificate)
            except DuplicateCertificateError:
                current = await self.entities.get_package(package_id)
                if current is not None and current.certificate_id is not None:
                    raise
                logger.warning(
                    f"Certificate number taken concurrently on attempt {attempt}: "
                    f"{certificate.certificate_number}"
                )
                continue

            logger.info(f"Issued certificate {certificate.certificate_number} for evidence package {package_id}")
            return certificate

        raise DuplicateCertificateError(
            f"Could not allocate a unique certificate number in {self.max_attempts} attempts"
        )
