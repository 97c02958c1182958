"""
Unit Tests: Rule-based analysis generator and analysis stats
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from documind.models.entities import AnalysisKind, Severity
from documind.processing.analysis import contains_sensitive_data, generate_analyses, summarize


@pytest.mark.unit
class TestGenerateAnalyses:

    def test_todo_text_file(self):
        findings = generate_analyses("notes.txt", "TODO: fix the bug please")

        assert [(f.kind, f.title, f.confidence, f.severity) for f in findings] == [
            (AnalysisKind.INSIGHT,     "Document Statistics",        100, None),
            (AnalysisKind.OPPORTUNITY, "Action Items Found",          90, Severity.MEDIUM),
            (AnalysisKind.INSIGHT,     "Content Analysis",            95, None),
            (AnalysisKind.COMPLIANCE,  "No Sensitive Data Detected",  80, Severity.LOW),
        ]
        assert findings[0].description == "Document contains 5 words, 24 characters, and 1 lines."
        assert findings[2].description == "Plain text document processed successfully."

    def test_todo_outside_txt_is_ignored(self):
        titles = [f.title for f in generate_analyses("notes.md", "TODO later")]
        assert "Action Items Found" not in titles

    def test_email_flags_high_compliance(self):
        findings = generate_analyses("contact.txt", "Reach me at test@example.com")
        compliance = findings[-1]
        assert compliance.kind is AnalysisKind.COMPLIANCE
        assert compliance.title == "Sensitive Data Detected"
        assert compliance.severity is Severity.HIGH
        assert compliance.confidence == 85

    def test_csv_description_counts_columns_and_rows(self):
        findings = generate_analyses("people.csv", "name,age,city\nann,30,Oslo\nbob,41,Rome")
        assert findings[1].description == "CSV file with 3 columns and 2 data rows."

    def test_empty_csv_counts_one_column(self):
        findings = generate_analyses("empty.csv", "")
        assert findings[1].description == "CSV file with 1 columns and 0 data rows."

    @pytest.mark.parametrize("content, expected", [
        ('{\n  "a": 1\n}', "Valid JSON structure detected with proper formatting."),
        ('{"a": ',         "JSON file with potential formatting issues detected."),
    ])
    def test_json_description(self, content, expected):
        assert generate_analyses("data.json", content)[1].description == expected

    def test_other_extension_description(self):
        assert generate_analyses("report.pdf", "text")[1].description == "PDF file type processed."
        assert generate_analyses("README", "text")[1].description == "Unknown file type processed."


@pytest.mark.unit
@pytest.mark.parametrize("content, flagged", [
    ("SSN 123-45-6789 on file",        True),
    ("card 4111 1111 1111 1111",       True),
    ("mail a.b+c@example.co.uk today", True),
    ("nothing to see here 12-34",      False),
])
def test_contains_sensitive_data(content, flagged):
    assert contains_sensitive_data(content) is flagged


@pytest.mark.unit
class TestSummarize:

    def test_rollup(self):
        now = datetime(2025, 1, 10, tzinfo=timezone.utc)
        rows = [
            SimpleNamespace(kind="INSIGHT",    severity=None,   confidence=100, created_at=now - timedelta(days=1)),
            SimpleNamespace(kind="INSIGHT",    severity=None,   confidence=95,  created_at=now - timedelta(days=30)),
            SimpleNamespace(kind="COMPLIANCE", severity="HIGH", confidence=85,
                            created_at=(now - timedelta(days=2)).replace(tzinfo=None)),
        ]
        stats = summarize(rows, now=now)

        assert stats == {
            "total":             3,
            "byType":            {"INSIGHT": 2, "COMPLIANCE": 1},
            "bySeverity":        {"HIGH": 1},
            "averageConfidence": 93,
            "recentCount":       2,
        }

    def test_empty(self):
        stats = summarize([])
        assert stats["total"] == 0
        assert stats["averageConfidence"] == 0
