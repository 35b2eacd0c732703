"""
Append-only audit log: recording, taxonomy, payload envelopes and queries.
"""

from custody.audit.diagnostics import AuditDiagnostics
from custody.audit.payloads import build_payload
from custody.audit.query import AuditPage, AuditQuery, format_audit_csv, parse_audit_csv
from custody.audit.recorder import AuditRecorder, RecordResult
from custody.audit.taxonomy import category_for, validate_category

__all__ = [
    "AuditDiagnostics",
    "AuditPage",
    "AuditQuery",
    "AuditRecorder",
    "RecordResult",
    "build_payload",
    "category_for",
    "format_audit_csv",
    "parse_audit_csv",
    "validate_category",
]
