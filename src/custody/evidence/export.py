"""
Evidence package export representations.

Every format is a view of the same canonical payload:
- JSON: the canonical bytes themselves (the hashed form)
- CSV: facts-only projection
- PDF / DOCX / ZIP: structured documents consumed by a downstream renderer
"""

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from custody.evidence.canonical import canonical_bytes
from custody.models import ExportFormat

logger = logging.getLogger(__name__)

FACT_CSV_HEADERS = [
    "Fact Type",
    "Fact Text",
    "Source Location",
    "Confidence",
    "Approval Status",
    "Approved By",
    "Approved At",
]

# Projection order matching FACT_CSV_HEADERS
FACT_CSV_FIELDS = [
    "fact_type",
    "fact_text",
    "source_location",
    "confidence_score",
    "approved_status",
    "approved_by",
    "approved_at",
]

PDF_STYLING = {
    "font": "Times New Roman",
    "font_size": 12,
    "line_spacing": 1.5,
    "margins": {"top": 1, "bottom": 1, "left": 1.25, "right": 1.25},
}

DOCX_SECTION_ORDER = ["cover_page", "toc", "disclaimer", "facts", "audit_trail", "appendix"]

README_TEXT = (
    "Evidence Package\n\n"
    "This package contains AI-extracted facts with attorney review records "
    "and the audit trail of the extraction.\n\n"
    "Files:\n"
    "- evidence_package.json: Complete canonical package data\n"
    "- extracted_facts.csv: Extracted facts in spreadsheet format\n"
    "- audit_trail.json: Audit log entries for the extraction job\n"
    "- review_records.json: Attorney review records\n"
)

FILE_EXTENSIONS = {
    ExportFormat.JSON: "json",
    ExportFormat.CSV: "csv",
    ExportFormat.PDF: "pdf.json",
    ExportFormat.DOCX: "docx.json",
    ExportFormat.ZIP: "zip.json",
}

CONTENT_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
    ExportFormat.PDF: "application/vnd.custody.pdf+json",
    ExportFormat.DOCX: "application/vnd.custody.docx+json",
    ExportFormat.ZIP: "application/vnd.custody.zip+json",
}


@dataclass
class ExportResult:
    """Result of an evidence package export."""

    format: ExportFormat
    filename: str
    content: bytes
    content_type: str
    package_hash: str
    exported_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


def _pretty(data: Any) -> bytes:
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8")


def facts_to_csv(facts: list[dict[str, Any]]) -> str:
    """
    Render fact projections as CSV.

    The header row is bare; every data cell is quoted with embedded quotes
    doubled. Missing approver and approval time become empty cells.
    """
    output = io.StringIO()
    output.write(",".join(FACT_CSV_HEADERS) + "\n")
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")

    for fact in facts:
        writer.writerow([
            "" if fact.get(name) is None else str(fact[name])
            for name in FACT_CSV_FIELDS
        ])

    return output.getvalue()


def parse_facts_csv(content: str) -> list[dict[str, Any]]:
    """
    Read a facts CSV back into fact projections.

    Inverse of facts_to_csv: empty approver/approval cells become None and
    confidence is parsed back to a float.
    """
    reader = csv.reader(io.StringIO(content, newline=""))
    rows = list(reader)
    if not rows:
        return []
    if rows[0] != FACT_CSV_HEADERS:
        raise ValueError(f"Unexpected CSV header: {rows[0]}")

    facts = []
    for row in rows[1:]:
        fact: dict[str, Any] = dict(zip(FACT_CSV_FIELDS, row))
        fact["confidence_score"] = float(fact["confidence_score"])
        for name in ("approved_by", "approved_at"):
            if fact[name] == "":
                fact[name] = None
        facts.append(fact)
    return facts


class EvidenceExporter:
    """Renders a canonical payload into an export representation."""

    def export(
        self,
        payload: dict[str, Any],
        export_format: ExportFormat,
        package_hash: str,
        package_id: Optional[str] = None,
    ) -> ExportResult:
        """
        Export a canonical payload in the requested format.

        Args:
            payload: Canonical payload built by the assembler
            export_format: Target representation
            package_hash: Content hash of the canonical payload
            package_id: Used to name the exported file

        Returns:
            ExportResult with the rendered content
        """
        export_format = ExportFormat(export_format)

        if export_format == ExportFormat.JSON:
            content = canonical_bytes(payload)
        elif export_format == ExportFormat.CSV:
            content = facts_to_csv(payload["contents"]["extracted_facts"]).encode("utf-8")
        elif export_format == ExportFormat.PDF:
            content = _pretty(self.pdf_document(payload))
        elif export_format == ExportFormat.DOCX:
            content = _pretty(self.docx_document(payload))
        elif export_format == ExportFormat.ZIP:
            content = _pretty(self.zip_manifest(payload))
        else:
            raise ValueError(f"Unsupported export format: {export_format}")

        stem = f"evidence_package_{package_id or package_hash[:16]}"
        extension = FILE_EXTENSIONS[export_format]

        logger.debug(f"Exported package {stem} as {export_format.value} ({len(content)} bytes)")

        return ExportResult(
            format=export_format,
            filename=f"{stem}.{extension}",
            content=content,
            content_type=CONTENT_TYPES[export_format],
            package_hash=package_hash,
        )

    def pdf_document(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Court-ready PDF layout description."""
        return {**payload, "format": "court_ready_pdf", "styling": PDF_STYLING}

    def docx_document(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Word document with explicitly ordered sections."""
        contents = payload["contents"]
        section_content = {
            "cover_page": {"title": payload["package"]["title"]},
            "toc": {"title": "Table of Contents"},
            "disclaimer": {"content": payload["disclaimer"]},
            "facts": {"content": contents["extracted_facts"]},
            "audit_trail": {"content": contents["audit_trail"]},
            "appendix": {"content": contents["source_documents"]},
        }
        return {
            **payload,
            "format": "docx",
            "sections": [{"type": name, **section_content[name]} for name in DOCX_SECTION_ORDER],
        }

    def zip_manifest(self, payload: dict[str, Any]) -> dict[str, Any]:
        """File manifest for an archive builder."""
        contents = payload["contents"]
        return {
            "format": "zip",
            "files": [
                {"name": "evidence_package.json", "content": canonical_bytes(payload).decode("utf-8")},
                {"name": "extracted_facts.csv", "content": facts_to_csv(contents["extracted_facts"])},
                {"name": "audit_trail.json", "content": _pretty(contents["audit_trail"]).decode("utf-8")},
                {"name": "review_records.json", "content": _pretty(contents["review_records"]).decode("utf-8")},
                {"name": "README.txt", "content": README_TEXT},
            ],
        }
