"""
PolicyQA Text Extractor

Converts uploaded policy files into plain text for chunking.
PDF uses PyPDF2 with pdfplumber fallback for complex layouts; DOCX is
handed to an isolated extraction routine built on docx2txt.
"""

import asyncio
import io
import logging

import docx2txt
import pdfplumber
from PyPDF2 import PdfReader

from policyqa.errors import ExtractionFailure, UnsupportedFormat

logger = logging.getLogger(__name__)

# ============================================
# MIME Types
# ============================================

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)
LEGACY_DOC_MIME_TYPE = "application/msword"

SUPPORTED_MIME_TYPES = frozenset({PDF_MIME_TYPE, DOCX_MIME_TYPE})

# Anything smaller cannot be a real PDF or DOCX file
MIN_BLOB_SIZE_BYTES = 10

DEFAULT_EXTRACTION_TIMEOUT = 60.0


def check_supported(mime_type: str) -> None:
    """Raise UnsupportedFormat unless ``mime_type`` can be extracted."""
    if mime_type == LEGACY_DOC_MIME_TYPE:
        raise UnsupportedFormat(
            ".doc format not currently supported for parsing; "
            "convert the file to DOCX or PDF"
        )
    if mime_type not in SUPPORTED_MIME_TYPES:
        raise UnsupportedFormat(f"Unsupported file type: {mime_type}")


# ============================================
# PDF Parser
# ============================================


class PDFParser:
    """Extracts the text of every page of a PDF as one string.

    Page boundaries are not preserved as structure; pages are joined with a
    single newline so they never look like section breaks to the chunker.
    """

    def parse(self, pdf_bytes: bytes) -> str:
        """Parse PDF bytes and return the concatenated page text.

        Raises:
            ExtractionFailure: If neither parser can read the file.
        """
        if not pdf_bytes:
            raise ExtractionFailure("Empty PDF data provided")

        errors: list[str] = []

        # Try PyPDF2 first
        try:
            text = self._extract_with_pypdf2(pdf_bytes)
            if text.strip():
                return text
        except Exception as e:
            logger.warning("PyPDF2 extraction failed: %s", e)
            errors.append(f"PyPDF2: {e}")

        # Fallback to pdfplumber
        try:
            return self._extract_with_pdfplumber(pdf_bytes)
        except Exception as e:
            logger.warning("pdfplumber extraction failed: %s", e)
            errors.append(f"pdfplumber: {e}")

        raise ExtractionFailure("Failed to parse PDF: " + "; ".join(errors))

    def _extract_with_pypdf2(self, pdf_bytes: bytes) -> str:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        parts = [page.extract_text() or "" for page in reader.pages]
        return "\n".join(part for part in parts if part)

    def _extract_with_pdfplumber(self, pdf_bytes: bytes) -> str:
        """Extract text using pdfplumber (better for tables)."""
        parts = []
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            for page in pdf.pages:
                page_text = page.extract_text()
                if page_text:
                    parts.append(page_text)
        return "\n".join(parts)


# ============================================
# DOCX Extractor
# ============================================


class DocxExtractor:
    """Isolated DOCX-to-text routine.

    The parser runs in a worker thread under a timeout so a malformed file
    cannot stall the event loop. Parser errors surface as ExtractionFailure
    carrying the underlying message.
    """

    def __init__(self, timeout: float = DEFAULT_EXTRACTION_TIMEOUT) -> None:
        self.timeout = timeout

    @staticmethod
    def _parse_sync(docx_bytes: bytes) -> str:
        return docx2txt.process(io.BytesIO(docx_bytes)) or ""

    async def extract(self, docx_bytes: bytes) -> str:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._parse_sync, docx_bytes),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ExtractionFailure(
                f"DOCX extraction timed out after {self.timeout:.0f}s"
            ) from e
        except Exception as e:
            logger.error("DOCX extraction failed: %s", e)
            raise ExtractionFailure(f"Failed to parse DOCX content: {e}") from e

    async def extract_from_storage(self, blob_store, file_path: str) -> str:
        """Fetch the DOCX blob by path and extract it."""
        data = await blob_store.download(file_path)
        _check_blob_size(data, file_path)
        return await self.extract(data)


def _check_blob_size(data: bytes, file_path: str) -> None:
    if len(data) < MIN_BLOB_SIZE_BYTES:
        raise ExtractionFailure(
            f"Downloaded file appears invalid (size too small). "
            f"Path: {file_path}, Size: {len(data)}"
        )


# ============================================
# Text Extractor
# ============================================


class TextExtractor:
    """Dispatches a document to the right format-specific extractor."""

    def __init__(
        self,
        pdf_parser: PDFParser | None = None,
        docx_extractor: DocxExtractor | None = None,
        timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
    ) -> None:
        self.timeout = timeout
        self.pdf_parser = pdf_parser or PDFParser()
        self.docx_extractor = docx_extractor or DocxExtractor(timeout=timeout)

    async def extract(self, file_bytes: bytes, mime_type: str) -> str:
        """Extract plain text from raw file bytes.

        Raises:
            UnsupportedFormat: For anything other than PDF or DOCX.
            ExtractionFailure: On parser error or empty output.
        """
        check_supported(mime_type)

        if mime_type == PDF_MIME_TYPE:
            text = await self._parse_pdf(file_bytes)
        else:
            text = await self.docx_extractor.extract(file_bytes)

        return _require_text(text, mime_type)

    async def extract_document(self, blob_store, file_path: str, mime_type: str) -> str:
        """Extract the text of a stored document.

        The MIME type is validated before anything is downloaded. PDFs are
        downloaded here; DOCX files are fetched by the DOCX routine itself.
        """
        check_supported(mime_type)

        if mime_type == DOCX_MIME_TYPE:
            logger.info("Delegating %s to DOCX extractor", file_path)
            text = await self.docx_extractor.extract_from_storage(blob_store, file_path)
            return _require_text(text, mime_type)

        logger.info("Downloading PDF from storage path: %s", file_path)
        data = await blob_store.download(file_path)
        _check_blob_size(data, file_path)
        text = await self._parse_pdf(data)
        logger.info("Extracted %d characters from %s", len(text), file_path)
        return _require_text(text, mime_type)

    async def _parse_pdf(self, pdf_bytes: bytes) -> str:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.pdf_parser.parse, pdf_bytes),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ExtractionFailure(
                f"PDF extraction timed out after {self.timeout:.0f}s"
            ) from e


def _require_text(text: str, mime_type: str) -> str:
    if not text or not text.strip():
        raise ExtractionFailure(
            f"Text extraction failed or document was empty (type: {mime_type})"
        )
    return text
