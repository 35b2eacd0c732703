"""
Privilege log generation.

Lists the documents of a matter withheld as attorney-client privileged or
attorney work product, with who uploaded them and who asserted privilege.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from custody.audit.recorder import AuditRecorder
from custody.chain.builder import display_name
from custody.exceptions import NotFoundError
from custody.models import (
    SYSTEM_CONTEXT,
    ClientContext,
    Correlation,
    Document,
    EventCategory,
    Matter,
    User,
)
from custody.store.base import EntityStore

logger = logging.getLogger(__name__)


def attorney_label(user: Optional[User]) -> str:
    """Name with bar credential, e.g. "Jane Doe (Bar: 12345)"."""
    if user is None:
        return "Unknown"
    name = display_name(user, "Unknown")
    if user.bar_number:
        return f"{name} (Bar: {user.bar_number})"
    return name


@dataclass
class PrivilegeLogEntry:
    document: Document
    uploaded_by_name: Optional[str]
    privileged_by_name: Optional[str]
    privileged_by_bar_number: Optional[str]

    @property
    def privilege_basis(self) -> list[str]:
        basis = []
        if self.document.attorney_client_privilege:
            basis.append("attorney_client_privilege")
        if self.document.work_product:
            basis.append("work_product")
        return basis

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.document.to_dict(),
            "privilege_basis": self.privilege_basis,
            "uploaded_by_name": self.uploaded_by_name,
            "privileged_by_name": self.privileged_by_name,
            "privileged_by_bar_number": self.privileged_by_bar_number,
        }


@dataclass
class PrivilegeLog:
    matter: Matter
    entries: list[PrivilegeLogEntry]
    generated_by: str
    generated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "matter": self.matter.to_dict(),
            "documents": [e.to_dict() for e in self.entries],
            "generated_by": self.generated_by,
            "generated_at": self.generated_at.isoformat(),
        }


class PrivilegeLogGenerator:
    """Builds privilege logs for matters."""

    def __init__(self, entities: EntityStore, recorder: Optional[AuditRecorder] = None):
        self.entities = entities
        self.recorder = recorder

    async def build(
        self,
        matter_id: UUID,
        generated_by: UUID,
        context: ClientContext = SYSTEM_CONTEXT,
    ) -> PrivilegeLog:
        """
        Build the privilege log of a matter, oldest document first.

        Raises:
            NotFoundError: matter does not exist
        """
        matter = await self.entities.get_matter(matter_id)
        if matter is None:
            raise NotFoundError("matter", matter_id)

        documents = await self.entities.list_privileged_documents(matter_id)

        user_ids = {generated_by}
        user_ids.update(d.uploaded_by for d in documents if d.uploaded_by)
        user_ids.update(d.privileged_by for d in documents if d.privileged_by)
        users = await self.entities.get_users(user_ids)

        entries = []
        for document in documents:
            uploader = users.get(document.uploaded_by) if document.uploaded_by else None
            asserter = users.get(document.privileged_by) if document.privileged_by else None
            entries.append(
                PrivilegeLogEntry(
                    document=document,
                    uploaded_by_name=display_name(uploader, None) if uploader else None,
                    privileged_by_name=display_name(asserter, None) if asserter else None,
                    privileged_by_bar_number=asserter.bar_number if asserter else None,
                )
            )

        log = PrivilegeLog(
            matter=matter,
            entries=entries,
            generated_by=attorney_label(users.get(generated_by)),
        )
        logger.info(f"Generated privilege log for matter {matter_id}: {len(entries)} documents")

        if self.recorder is not None:
            await self.recorder.append(
                "privilege_log.generated",
                EventCategory.DATA_ACCESS,
                generated_by,
                Correlation(matter_id=matter_id),
                {"result_count": len(entries)},
                context,
            )

        return log
