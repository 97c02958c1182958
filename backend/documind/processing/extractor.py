"""
Content Extractor
═════════════════

Turns raw uploaded bytes into text, dispatched on the file extension.

  ┌───────────────────────┬────────────────────────────────────────────────┐
  │ extension             │ strategy                                       │
  ├───────────────────────┼────────────────────────────────────────────────┤
  │ txt csv xml md        │ UTF-8 decode (invalid bytes replaced)          │
  │ json                  │ parse + re-serialize (indent 2), else raw text │
  │ pdf                   │ pypdf text layer + page count                  │
  │ doc docx              │ python-docx paragraphs                         │
  │ jpg jpeg png gif webp │ fixed placeholder (no OCR)                     │
  │ anything else         │ strict UTF-8 + printable-ratio binary check    │
  └───────────────────────┴────────────────────────────────────────────────┘

extract_content() never raises. Parser failures are caught here as
ExtractionError and folded into an ExtractionOutcome whose is_placeholder
flag is set and whose error field carries the reason, so the lifecycle
manager can always move the document on to COMPLETED.
"""

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass

from docx import Document as DocxDocument
from pypdf import PdfReader

from documind.core.errors import ExtractionError

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS  = frozenset({"txt", "csv", "xml", "md"})
IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})
WORD_EXTENSIONS  = frozenset({"doc", "docx"})

# Share of printable characters above which unknown bytes count as text
_PRINTABLE_THRESHOLD = 0.8


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExtractionOutcome:
    """
    text           : extracted text, or the placeholder when is_placeholder
    method         : "text" | "json" | "pypdf" | "python-docx" | "image" | "binary" | "placeholder"
    is_placeholder : True when text describes the file instead of its content
    page_count     : pages reported by the PDF parser, else None
    error          : parser failure reason when a fallback was used
    """
    text:           str
    method:         str
    is_placeholder: bool = False
    page_count:     int | None = None
    error:          str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def format_file_size(num_bytes: int) -> str:
    """1536 → '1.5 KB'. Base 1024, at most two decimals, trailing zeros dropped."""
    if num_bytes <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    i = 0
    while num_bytes >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    value = round(num_bytes / 1024 ** i, 2)
    return f"{value:g} {units[i]}"


def file_extension(filename: str) -> str:
    """Lower-cased extension without the dot; '' when the name has none."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def _printable_ratio(text: str) -> float:
    if not text:
        return 1.0
    printable = sum(1 for ch in text if (" " <= ch <= "~") or ch in "\t\n\r")
    return printable / len(text)


def _placeholder(kind: str, filename: str, size: int) -> str:
    return f"{kind}: {filename}\nSize: {format_file_size(size)}"


# ---------------------------------------------------------------------------
# Parsers (may raise ExtractionError)
# ---------------------------------------------------------------------------

def _parse_pdf(data: bytes) -> tuple[str, int]:
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as exc:  # pypdf raises a wide, version-dependent set
        raise ExtractionError(f"pdf parse failed: {exc}") from exc
    return "\n".join(pages).strip(), len(pages)


def _parse_docx(data: bytes) -> str:
    try:
        doc = DocxDocument(io.BytesIO(data))
    except Exception as exc:  # legacy .doc and corrupt archives both land here
        raise ExtractionError(f"word parse failed: {exc}") from exc
    return "\n".join(p.text for p in doc.paragraphs).strip()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def extract_content(data: bytes, filename: str) -> ExtractionOutcome:
    """Extract text from an upload. Never raises."""
    ext  = file_extension(filename)
    size = len(data)

    if ext in TEXT_EXTENSIONS:
        return ExtractionOutcome(text=data.decode("utf-8", errors="replace"), method="text")

    if ext == "json":
        raw = data.decode("utf-8", errors="replace")
        try:
            return ExtractionOutcome(text=json.dumps(json.loads(raw), indent=2, ensure_ascii=False), method="json")
        except ValueError as exc:
            logger.info("Extraction | invalid json file=%s: %s", filename, exc)
            return ExtractionOutcome(text=raw, method="text", error=str(exc))

    if ext == "pdf":
        try:
            text, pages = _parse_pdf(data)
        except ExtractionError as exc:
            logger.warning("Extraction | strategy=pypdf file=%s fell back: %s", filename, exc)
            return ExtractionOutcome(
                text=_placeholder("PDF Document", filename, size),
                method="placeholder",
                is_placeholder=True,
                error=str(exc),
            )
        if not text:
            return ExtractionOutcome(
                text=_placeholder("PDF Document", filename, size),
                method="placeholder",
                is_placeholder=True,
                page_count=pages,
                error="no text layer",
            )
        logger.info("Extraction | strategy=pypdf file=%s pages=%d chars=%d", filename, pages, len(text))
        return ExtractionOutcome(text=text, method="pypdf", page_count=pages)

    if ext in WORD_EXTENSIONS:
        try:
            text = _parse_docx(data)
        except ExtractionError as exc:
            logger.warning("Extraction | strategy=python-docx file=%s fell back: %s", filename, exc)
            text, error = "", str(exc)
        else:
            error = None if text else "no paragraph text"
        if not text:
            return ExtractionOutcome(
                text=_placeholder("Word Document", filename, size),
                method="placeholder",
                is_placeholder=True,
                error=error,
            )
        return ExtractionOutcome(text=text, method="python-docx")

    if ext in IMAGE_EXTENSIONS:
        return ExtractionOutcome(
            text=(
                _placeholder("Image File", filename, size)
                + "\nImage analysis and OCR capabilities would be implemented here."
            ),
            method="image",
            is_placeholder=True,
        )

    binary = ExtractionOutcome(
        text=_placeholder("Binary File", filename, size) + "\nBinary content cannot be displayed as text.",
        method="binary",
        is_placeholder=True,
    )
    try:
        decoded = data.decode("utf-8")
    except UnicodeDecodeError:
        return binary
    if _printable_ratio(decoded) <= _PRINTABLE_THRESHOLD:
        return binary
    return ExtractionOutcome(text=decoded, method="text")
