"""
Evidence package API routes.

Provides endpoints for:
- Generating evidence packages from extraction job results
- Locking, delivering and filing packages
- Verifying packaged content against its snapshots
"""

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from custody.api.deps import Assembler, Context, Lifecycle, UserId, Verifier
from custody.evidence import IncludeOptions, PackageLifecycle, PackageOptions
from custody.models import EvidencePackageRecord, FactFilter

router = APIRouter()


class IncludeRequest(BaseModel):
    """Content categories to include. Omitted categories are packaged empty."""

    include_facts: bool = Field(default=False, description="Include extracted facts")
    include_source_documents: bool = Field(default=False, description="Include source documents")
    include_audit_logs: bool = Field(default=False, description="Include the job's audit trail")
    include_review_records: bool = Field(default=False, description="Include attorney reviews")
    include_metadata: bool = Field(default=False, description="Include extraction job metadata")


class FilterRequest(BaseModel):
    """Fact filters; all optional and combined with AND."""

    min_confidence: Optional[float] = Field(
        default=None, description="Minimum confidence score, between 0 and 1"
    )
    approval_statuses: Optional[list[str]] = Field(
        default=None, description="Approval statuses to keep"
    )
    fact_types: Optional[list[str]] = Field(default=None, description="Fact types to keep")


class PackageCreateRequest(BaseModel):
    """Request to generate an evidence package."""

    matter_id: UUID = Field(..., description="Matter the extraction job belongs to")
    extraction_job_id: UUID = Field(..., description="Extraction job to package")
    package_type: str = Field(
        ..., description="Package type: full_evidence, audit_only, facts_only, court_ready"
    )
    title: str = Field(..., description="Package title")
    description: Optional[str] = None
    export_format: str = Field(default="json", description="Export format: json, csv, pdf, docx, zip")
    include: IncludeRequest = Field(default_factory=IncludeRequest)
    filters: FilterRequest = Field(default_factory=FilterRequest)

    def to_options(self) -> PackageOptions:
        return PackageOptions(
            matter_id=self.matter_id,
            extraction_job_id=self.extraction_job_id,
            package_type=self.package_type,
            title=self.title,
            export_format=self.export_format,
            description=self.description,
            include=IncludeOptions(**self.include.model_dump()),
            filters=FactFilter(
                min_confidence=self.filters.min_confidence,
                approval_statuses=(
                    tuple(self.filters.approval_statuses)
                    if self.filters.approval_statuses is not None else None
                ),
                fact_types=(
                    tuple(self.filters.fact_types)
                    if self.filters.fact_types is not None else None
                ),
            ),
        )


async def _package_response(lifecycle: PackageLifecycle, package: EvidencePackageRecord) -> dict[str, Any]:
    certificate = await lifecycle.get_certificate(package)
    return {
        **package.to_dict(),
        "certificate": certificate.to_dict() if certificate else None,
    }


@router.post("/packages", status_code=status.HTTP_201_CREATED)
async def generate_package(
    request: PackageCreateRequest,
    assembler: Assembler,
    user_id: UserId,
    context: Context,
) -> dict[str, Any]:
    """
    Generate an evidence package.

    Court-ready packages receive a certificate of authenticity. The
    response carries the rendered export alongside the package record.
    """
    generated = await assembler.generate(request.to_options(), generated_by=user_id, context=context)
    return {
        **generated.record.to_dict(),
        "content_hash": generated.content_hash,
        "certificate": generated.certificate.to_dict() if generated.certificate else None,
        "statistics": generated.payload["statistics"],
        "export": {
            "format": generated.export.format.value,
            "filename": generated.export.filename,
            "content_type": generated.export.content_type,
            "content": generated.export.text,
        },
    }


@router.get("/packages/{package_id}")
async def get_package(package_id: UUID, lifecycle: Lifecycle, user_id: UserId) -> dict[str, Any]:
    package = await lifecycle.get_package(package_id)
    return await _package_response(lifecycle, package)


@router.post("/packages/{package_id}/lock")
async def lock_package(
    package_id: UUID, lifecycle: Lifecycle, user_id: UserId, context: Context
) -> dict[str, Any]:
    """Certify a generated package, preventing further modification."""
    package = await lifecycle.lock_package(package_id, user_id, context)
    return await _package_response(lifecycle, package)


@router.post("/packages/{package_id}/deliver")
async def deliver_package(
    package_id: UUID, lifecycle: Lifecycle, user_id: UserId, context: Context
) -> dict[str, Any]:
    package = await lifecycle.mark_delivered(package_id, user_id, context)
    return await _package_response(lifecycle, package)


@router.post("/packages/{package_id}/file")
async def file_package(
    package_id: UUID, lifecycle: Lifecycle, user_id: UserId, context: Context
) -> dict[str, Any]:
    """File a package with the court. Filed packages never change again."""
    package = await lifecycle.mark_filed(package_id, user_id, context)
    return await _package_response(lifecycle, package)


@router.get("/packages/{package_id}/verify")
async def verify_package(
    package_id: UUID, verifier: Verifier, user_id: UserId, context: Context
) -> dict[str, Any]:
    """Check every packaged fact and document against its snapshot and source."""
    report = await verifier.verify_package(package_id, viewer_id=user_id, context=context)
    return report.to_dict()
