"""
Model-reply envelopes: the JSON shapes requested from every provider.

These field names are a wire contract with the models and with downstream
consumers; they must not change.

Query:
    {"answer": str, "insights": [str], "patterns": [str],
     "confidence": number, "relevantDocuments": [str]}

Search:
    {"results": [{"documentId": str, "relevanceScore": 0..1, "reason": str,
                  "keyMatches": [str], "category": str}],
     "summary": str, "totalRelevant": int}
"""

from __future__ import annotations

from pydantic import Field

from documind.schemas.common import CamelModel

FALLBACK_CONFIDENCE = 75


class QueryEnvelope(CamelModel):
    answer:             str
    insights:           list[str] = Field(default_factory=list)
    patterns:           list[str] = Field(default_factory=list)
    confidence:         float     = FALLBACK_CONFIDENCE
    relevant_documents: list[str] = Field(default_factory=list)

    @classmethod
    def fallback(cls, raw_text: str, document_names: list[str]) -> "QueryEnvelope":
        """Envelope used when the model's reply is not valid JSON."""
        return cls(
            answer=raw_text,
            insights=[],
            patterns=[],
            confidence=FALLBACK_CONFIDENCE,
            relevant_documents=list(document_names),
        )


class SearchHit(CamelModel):
    document_id:     str
    relevance_score: float
    reason:          str       = ""
    key_matches:     list[str] = Field(default_factory=list)
    category:        str | None = None


class SearchReply(CamelModel):
    results:        list[SearchHit]
    summary:        str = ""
    total_relevant: int = 0
