"""
API route modules.
"""

from custody.api.routes.audit import router as audit_router
from custody.api.routes.documents import router as documents_router
from custody.api.routes.evidence import router as evidence_router

__all__ = [
    "audit_router",
    "documents_router",
    "evidence_router",
]
