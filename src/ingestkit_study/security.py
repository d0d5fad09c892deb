"""Pre-flight checks for uploaded study PDFs.

Rejects payloads that are not PDFs, that are oversized, password
protected, empty, page-heavy, or carry embedded JavaScript, before any
model call is spent on them.  Works entirely on in-memory bytes since
uploads arrive either inline (base64) or from object storage.
"""

from __future__ import annotations

import logging

import fitz  # PyMuPDF

from ingestkit_study.config import StudyProcessorConfig
from ingestkit_study.errors import ErrorCode, IngestError

logger = logging.getLogger("ingestkit_study")

_PDF_MAGIC = b"%PDF-"


class PDFSecurityScanner:
    """Run pre-flight checks on PDF bytes.

    ``scan`` returns the page count (0 when unknown) and a list of
    errors.  Any ``E_*`` code means the document must not be processed.
    """

    def __init__(self, config: StudyProcessorConfig) -> None:
        self.config = config

    def scan(self, pdf_bytes: bytes, document_id: str = "") -> tuple[int, list[IngestError]]:
        errors: list[IngestError] = []

        if not pdf_bytes.startswith(_PDF_MAGIC):
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_INVALID_PDF,
                    message="Payload does not start with %PDF- magic bytes",
                    stage="security",
                )
            )
            return 0, errors

        max_bytes = self.config.max_file_size_mb * 1024 * 1024
        if len(pdf_bytes) > max_bytes:
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_TOO_LARGE,
                    message=f"File size {len(pdf_bytes)} bytes exceeds limit of {max_bytes} bytes",
                    stage="security",
                )
            )
            return 0, errors

        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as exc:
            errors.append(
                IngestError(
                    code=ErrorCode.E_PARSE_CORRUPT,
                    message=f"PyMuPDF cannot open payload: {exc}",
                    stage="security",
                )
            )
            return 0, errors

        try:
            if doc.needs_pass and not doc.authenticate(""):
                errors.append(
                    IngestError(
                        code=ErrorCode.E_PARSE_PASSWORD,
                        message="PDF requires a password to open",
                        stage="security",
                    )
                )
                return 0, errors

            page_count = doc.page_count
            if page_count == 0:
                errors.append(
                    IngestError(
                        code=ErrorCode.E_PARSE_EMPTY,
                        message="PDF has zero pages",
                        stage="security",
                    )
                )
                return 0, errors

            if page_count > self.config.max_page_count:
                errors.append(
                    IngestError(
                        code=ErrorCode.E_SECURITY_TOO_MANY_PAGES,
                        message=(
                            f"Page count {page_count} exceeds limit "
                            f"of {self.config.max_page_count}"
                        ),
                        stage="security",
                    )
                )
                return page_count, errors

            if self.config.reject_javascript and self._detect_javascript(doc):
                errors.append(
                    IngestError(
                        code=ErrorCode.E_SECURITY_JAVASCRIPT,
                        message="Embedded JavaScript detected in PDF",
                        stage="security",
                    )
                )
        finally:
            doc.close()

        if errors:
            logger.warning(
                "ingestkit_study | document=%s | stage=security | code=%s",
                document_id,
                errors[0].code.value,
            )
        return page_count, errors

    @staticmethod
    def _detect_javascript(doc: fitz.Document) -> bool:
        """Scan xref objects for embedded JavaScript."""
        for xref in range(1, doc.xref_length()):
            try:
                keys = doc.xref_get_keys(xref)
                if "JS" in keys or "JavaScript" in keys:
                    return True
                obj_type = doc.xref_get_key(xref, "S")
                if obj_type and obj_type[1] == "/JavaScript":
                    return True
            except Exception:
                continue
        return False
