"""
Custody Ledger - Evidentiary Audit and Chain-of-Custody Core

The tamper-evident core of a regulated legal document platform:
- Append-only audit event log with an asymmetric failure policy
- Chain-of-custody reconstruction for individual documents
- Privilege logs for matters
- Hashed, certifiable evidence packages for litigation
- Byte-level integrity verification of stored documents
"""

__version__ = "0.1.0"
