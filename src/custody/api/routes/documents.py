"""
Document and matter API routes.

Chain-of-custody reports, document integrity checks, privilege logs and
the evidence packages of a matter.
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter

from custody.api.deps import Context, Custody, Lifecycle, Privilege, UserId, Verifier

router = APIRouter()


@router.get("/documents/{document_id}/chain-of-custody")
async def get_chain_of_custody(
    document_id: UUID,
    custody: Custody,
    user_id: UserId,
    context: Context,
) -> dict[str, Any]:
    """
    Full custody history of a document.

    Returns the document, every audit event in chronological order,
    extractions with attorney reviews, privilege changes and a summary.
    """
    report = await custody.build(document_id, viewer_id=user_id, context=context)
    return report.to_dict()


@router.get("/documents/{document_id}/integrity")
async def verify_document_integrity(
    document_id: UUID,
    verifier: Verifier,
    user_id: UserId,
    context: Context,
) -> dict[str, Any]:
    """Recompute the document hash from stored content and compare."""
    result = await verifier.verify(document_id, viewer_id=user_id, context=context)
    return result.to_dict()


@router.get("/matters/{matter_id}/privilege-log")
async def get_privilege_log(
    matter_id: UUID,
    privilege: Privilege,
    user_id: UserId,
    context: Context,
) -> dict[str, Any]:
    """Privileged documents of a matter for discovery."""
    log = await privilege.build(matter_id, generated_by=user_id, context=context)
    return log.to_dict()


@router.get("/matters/{matter_id}/packages")
async def list_matter_packages(
    matter_id: UUID,
    lifecycle: Lifecycle,
    user_id: UserId,
) -> list[dict[str, Any]]:
    packages = await lifecycle.list_packages_for_matter(matter_id)
    return [p.to_dict() for p in packages]
