"""
Evidence packages: assembly, export, certificates, lifecycle and integrity.
"""

from custody.evidence.canonical import canonical_bytes, canonical_dumps, content_hash, sha256_hex
from custody.evidence.certificate import CertificateIssuer, generate_certificate_number
from custody.evidence.export import EvidenceExporter, ExportResult, facts_to_csv, parse_facts_csv
from custody.evidence.integrity import IntegrityResult, IntegrityVerifier, PackageIntegrityReport
from custody.evidence.lifecycle import PackageLifecycle
from custody.evidence.options import IncludeOptions, PackageContents, PackageOptions
from custody.evidence.package import EvidencePackageAssembler, GeneratedPackage, build_canonical_payload

__all__ = [
    "CertificateIssuer",
    "EvidenceExporter",
    "EvidencePackageAssembler",
    "ExportResult",
    "GeneratedPackage",
    "IncludeOptions",
    "IntegrityResult",
    "IntegrityVerifier",
    "PackageContents",
    "PackageIntegrityReport",
    "PackageLifecycle",
    "PackageOptions",
    "build_canonical_payload",
    "canonical_bytes",
    "canonical_dumps",
    "content_hash",
    "facts_to_csv",
    "generate_certificate_number",
    "parse_facts_csv",
    "sha256_hex",
]
