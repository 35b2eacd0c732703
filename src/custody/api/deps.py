"""
FastAPI dependencies for the API.

Provides:
- Store backends held on app.state
- Service construction per request
- Acting user from the X-User-Id header
- Client context (IP address, User-Agent)
"""

import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from custody.audit import AuditDiagnostics, AuditQuery, AuditRecorder
from custody.chain import ChainOfCustodyBuilder, PrivilegeLogGenerator
from custody.evidence import EvidencePackageAssembler, IntegrityVerifier, PackageLifecycle
from custody.models import ClientContext
from custody.store.base import DocumentStorage, EntityStore, EventStore

logger = logging.getLogger(__name__)


def get_event_store(request: Request) -> EventStore:
    """Event store created during app startup."""
    return request.app.state.events


def get_entity_store(request: Request) -> EntityStore:
    return request.app.state.entities


def get_document_storage(request: Request) -> DocumentStorage:
    return request.app.state.storage


def get_diagnostics(request: Request) -> AuditDiagnostics:
    return request.app.state.diagnostics


Events = Annotated[EventStore, Depends(get_event_store)]
Entities = Annotated[EntityStore, Depends(get_entity_store)]
Storage = Annotated[DocumentStorage, Depends(get_document_storage)]
Diagnostics = Annotated[AuditDiagnostics, Depends(get_diagnostics)]


def get_recorder(events: Events, diagnostics: Diagnostics) -> AuditRecorder:
    return AuditRecorder(events, diagnostics)


Recorder = Annotated[AuditRecorder, Depends(get_recorder)]


def get_audit_query(events: Events, entities: Entities, recorder: Recorder) -> AuditQuery:
    return AuditQuery(events, entities, recorder)


def get_custody_builder(
    events: Events, entities: Entities, recorder: Recorder
) -> ChainOfCustodyBuilder:
    return ChainOfCustodyBuilder(events, entities, recorder)


def get_privilege_generator(entities: Entities, recorder: Recorder) -> PrivilegeLogGenerator:
    return PrivilegeLogGenerator(entities, recorder)


def get_assembler(
    events: Events, entities: Entities, recorder: Recorder
) -> EvidencePackageAssembler:
    return EvidencePackageAssembler(entities, events, recorder)


def get_lifecycle(entities: Entities, recorder: Recorder) -> PackageLifecycle:
    return PackageLifecycle(entities, recorder)


def get_verifier(entities: Entities, storage: Storage, recorder: Recorder) -> IntegrityVerifier:
    return IntegrityVerifier(entities, storage, recorder)


# Type aliases for dependency injection
Audit = Annotated[AuditQuery, Depends(get_audit_query)]
Custody = Annotated[ChainOfCustodyBuilder, Depends(get_custody_builder)]
Privilege = Annotated[PrivilegeLogGenerator, Depends(get_privilege_generator)]
Assembler = Annotated[EvidencePackageAssembler, Depends(get_assembler)]
Lifecycle = Annotated[PackageLifecycle, Depends(get_lifecycle)]
Verifier = Annotated[IntegrityVerifier, Depends(get_verifier)]


async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> UUID:
    """
    Acting user, as asserted by the authenticating gateway.

    Raises:
        HTTPException: 401 if the header is missing or not a UUID
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    try:
        return UUID(x_user_id)
    except ValueError:
        logger.warning(f"Rejected malformed X-User-Id header: {x_user_id!r}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user id",
        )


async def get_client_context(
    request: Request,
    user_agent: Annotated[Optional[str], Header()] = None,
) -> ClientContext:
    """IP address and User-Agent recorded on audit entries."""
    return ClientContext(
        ip_address=request.client.host if request.client else "unknown",
        user_agent=user_agent or "unknown",
    )


UserId = Annotated[UUID, Depends(get_current_user_id)]
Context = Annotated[ClientContext, Depends(get_client_context)]
