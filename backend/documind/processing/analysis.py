"""
Rule-Based Analysis Generator

Deterministic findings for a freshly processed document. No model call and
no I/O: generate_analyses() is a pure function of (filename, content) and
the lifecycle manager persists whatever it returns.

Output order is fixed:
  1. INSIGHT     Document Statistics        (confidence 100)
  2. OPPORTUNITY Action Items Found         (txt with TODO/FIXME only, 90 MEDIUM)
  3. INSIGHT     Content Analysis           (confidence 95)
  4. COMPLIANCE  Sensitive / No Sensitive Data Detected
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from documind.models.entities import AnalysisKind, Severity
from documind.processing.extractor import file_extension

SENSITIVE_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),                              # SSN
    re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"),         # card number
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),  # email
)


@dataclass(frozen=True)
class Finding:
    kind:        AnalysisKind
    title:       str
    description: str
    confidence:  int
    severity:    Severity | None = None


def contains_sensitive_data(content: str) -> bool:
    return any(p.search(content) for p in SENSITIVE_PATTERNS)


def _statistics(content: str) -> Finding:
    words = len(re.split(r"\s+", content))
    chars = len(content)
    lines = len(content.split("\n"))
    return Finding(
        kind=AnalysisKind.INSIGHT,
        title="Document Statistics",
        description=f"Document contains {words} words, {chars} characters, and {lines} lines.",
        confidence=100,
    )


def _content_description(ext: str, content: str) -> str:
    if ext == "json":
        try:
            json.loads(content)
        except ValueError:
            return "JSON file with potential formatting issues detected."
        return "Valid JSON structure detected with proper formatting."
    if ext == "csv":
        lines = content.split("\n")
        headers = len(lines[0].split(","))
        return f"CSV file with {headers} columns and {len(lines) - 1} data rows."
    if ext == "txt":
        return "Plain text document processed successfully."
    return f"{ext.upper() or 'Unknown'} file type processed."


def generate_analyses(filename: str, content: str) -> list[Finding]:
    ext = file_extension(filename)
    findings = [_statistics(content)]

    if ext == "txt" and ("TODO" in content or "FIXME" in content):
        findings.append(Finding(
            kind=AnalysisKind.OPPORTUNITY,
            title="Action Items Found",
            description="Document contains TODO or FIXME items that may require attention.",
            confidence=90,
            severity=Severity.MEDIUM,
        ))

    findings.append(Finding(
        kind=AnalysisKind.INSIGHT,
        title="Content Analysis",
        description=_content_description(ext, content),
        confidence=95,
    ))

    if contains_sensitive_data(content):
        findings.append(Finding(
            kind=AnalysisKind.COMPLIANCE,
            title="Sensitive Data Detected",
            description=(
                "Document may contain sensitive information such as email addresses, "
                "phone numbers, or other PII."
            ),
            confidence=85,
            severity=Severity.HIGH,
        ))
    else:
        findings.append(Finding(
            kind=AnalysisKind.COMPLIANCE,
            title="No Sensitive Data Detected",
            description="Initial scan found no obvious sensitive data patterns.",
            confidence=80,
            severity=Severity.LOW,
        ))

    return findings


# ---------------------------------------------------------------------------
# Aggregate statistics for the analysis listing
# ---------------------------------------------------------------------------

def summarize(analyses: Iterable, now: datetime | None = None, recent_days: int = 7) -> dict:
    """
    Roll up stored analyses into the stats block of GET /analysis.

    Accepts any objects with kind / severity / confidence / created_at.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=recent_days)

    rows = list(analyses)
    by_type: dict[str, int] = {}
    by_severity: dict[str, int] = {}
    recent = 0
    for a in rows:
        by_type[a.kind] = by_type.get(a.kind, 0) + 1
        if a.severity:
            by_severity[a.severity] = by_severity.get(a.severity, 0) + 1
        created = a.created_at
        if created is not None:
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            if created >= cutoff:
                recent += 1

    average = round(sum(a.confidence for a in rows) / len(rows)) if rows else 0
    return {
        "total":             len(rows),
        "byType":            by_type,
        "bySeverity":        by_severity,
        "averageConfidence": average,
        "recentCount":       recent,
    }
