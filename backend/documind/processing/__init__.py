"""
Document Processing Package
════════════════════════════

Everything that happens to an upload's bytes after they are stored:

  Content Extraction → Rule-Based Analysis

Modules
───────
  extractor.py  Extension-dispatched text extraction; always returns an ExtractionOutcome
  analysis.py   Deterministic statistics / content / compliance findings

Both modules are pure (no I/O, no database); services/lifecycle.py owns
persistence and status changes.
"""

from documind.processing.analysis import Finding, generate_analyses, summarize
from documind.processing.extractor import ExtractionOutcome, extract_content, format_file_size

__all__ = [
    "ExtractionOutcome",
    "Finding",
    "extract_content",
    "format_file_size",
    "generate_analyses",
    "summarize",
]
