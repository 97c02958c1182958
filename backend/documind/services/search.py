"""
Search Orchestrator: semantic ranking with a deterministic keyword fallback

  documents ≤50 newest COMPLETED (type / category filters)
      │
      ├─ none → empty response, "No documents available for search"
      ▼
  resolve provider ──► gateway.generate_completion (temp 0.1, 2000 tokens)
      │                        │
      │ any failure            ▼
      │                  SearchReply JSON → join with documents,
      │                  drop unknown ids, sort, truncate    searchType=semantic
      ▼
  keyword_fallback_search()                                  searchType=keyword

search() never raises for provider problems: no config, a gateway error or
an unparsable reply all degrade to the keyword scorer.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import ValidationError

from documind.core.errors import ConfigurationError, ProviderError
from documind.db.repositories import DocumentRepository, ProviderConfigRepository
from documind.llm.gateway import CompletionGateway
from documind.models.entities import Document, User
from documind.schemas.envelopes import SearchReply
from documind.schemas.query import DocumentBrief, SearchRequest, SearchResponse, SearchResult, UsageView
from documind.security.credentials import to_connection
from documind.services.providers import resolve_provider
from documind.services.replies import extract_json_object

logger = logging.getLogger(__name__)

CANDIDATE_LIMIT = 50
NO_DOCUMENTS_MESSAGE = "No documents available for search"

# Keyword scorer weights
NAME_WEIGHT     = 0.3
CONTENT_WEIGHT  = 0.5
CATEGORY_WEIGHT = 0.4
PHRASE_BONUS    = 0.7

SYSTEM_PROMPT = (
    "You are an expert semantic search engine specialized in document analysis. "
    "You understand context, intent, and can find relevant information even when "
    "exact keywords are not present."
)


def build_search_prompt(query: str, documents: Sequence[Document]) -> str:
    blocks = "\n---\n".join(
        f"\nDocument ID: {doc.id}\n"
        f"Name: {doc.name}\n"
        f"Type: {doc.mime_type}\n"
        f"Category: {doc.category or ''}\n"
        f"Content: {doc.content or ''}\n"
        f"Upload Date: {doc.uploaded_at.isoformat() if doc.uploaded_at else ''}\n"
        for doc in documents
    )
    return f"""You are performing semantic search on a collection of documents.
Search Query: "{query}"

Available Documents:
{blocks}

Please analyze the search query and find the most relevant documents.
Consider semantic meaning, context, and intent rather than just keyword matching.

Return your response as a JSON object with the following structure:
{{
  "results": [
    {{
      "documentId": "doc_id",
      "relevanceScore": 0.95,
      "reason": "Explanation of why this document is relevant",
      "keyMatches": ["key phrase 1", "key phrase 2"],
      "category": "document category"
    }}
  ],
  "summary": "Brief summary of what was found",
  "totalRelevant": 3
}}

Focus on documents that actually contain relevant information, not just superficial matches.
Provide relevance scores between 0 and 1, where 1 is perfectly relevant."""


# ---------------------------------------------------------------------------
# Keyword fallback
# ---------------------------------------------------------------------------

def keyword_fallback_search(query: str, documents: Sequence[Document], limit: int) -> SearchResponse:
    """
    Deterministic scorer used whenever semantic search is unavailable.

    Per query term (lower-cased words longer than two characters):
    +0.3 in name, +0.5 in content, +0.4 in category. +0.7 when the whole
    query occurs in name or content. Capped at 1.0; zero scores dropped.
    """
    query_lower = query.lower()
    terms = [t for t in query_lower.split(" ") if len(t) > 2]

    results: list[SearchResult] = []
    for doc in documents:
        name     = doc.name.lower()
        content  = (doc.content or "").lower()
        category = (doc.category or "").lower()

        score = 0.0
        matches: list[str] = []
        for field, weight in ((name, NAME_WEIGHT), (content, CONTENT_WEIGHT), (category, CATEGORY_WEIGHT)):
            for term in terms:
                if term in field:
                    score += weight
                    matches.append(term)
        if query_lower in content or query_lower in name:
            score += PHRASE_BONUS
            matches.append(query)

        score = min(score, 1.0)
        if score <= 0:
            continue
        results.append(SearchResult(
            document_id=str(doc.id),
            relevance_score=score,
            reason=f"Keyword match found in {', '.join(matches) if matches else 'document content'}",
            key_matches=list(dict.fromkeys(matches)),
            category=doc.category or "Unknown",
            document=DocumentBrief.from_row(doc),
        ))

    results.sort(key=lambda r: r.relevance_score, reverse=True)
    results = results[:limit]
    return SearchResponse(
        results=results,
        query=query,
        total=len(results),
        summary=f"Found {len(results)} documents matching your search terms",
        search_type="keyword",
    )


def join_semantic_results(reply: SearchReply, documents: Sequence[Document], limit: int) -> list[SearchResult]:
    """Attach documents to model hits; unknown ids are dropped."""
    by_id = {str(doc.id): doc for doc in documents}
    joined = [
        SearchResult(
            document_id=hit.document_id,
            relevance_score=hit.relevance_score,
            reason=hit.reason,
            key_matches=hit.key_matches,
            category=hit.category,
            document=DocumentBrief.from_row(by_id[hit.document_id]),
        )
        for hit in reply.results
        if hit.document_id in by_id
    ]
    joined.sort(key=lambda r: r.relevance_score, reverse=True)
    return joined[:limit]


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class SearchOrchestrator:

    def __init__(
        self,
        documents: DocumentRepository,
        configs:   ProviderConfigRepository,
        gateway:   CompletionGateway,
    ) -> None:
        self._documents = documents
        self._configs   = configs
        self._gateway   = gateway

    async def search(self, owner: User, request: SearchRequest) -> SearchResponse:
        query = request.query
        documents = await self._documents.recent_completed(
            CANDIDATE_LIMIT,
            mime_type=request.filters.type,
            category=request.filters.category,
        )
        if not documents:
            return SearchResponse(results=[], query=query, total=0, message=NO_DOCUMENTS_MESSAGE)

        try:
            config = await resolve_provider(self._configs, owner, request.provider)
            connection = to_connection(config)
            completion = await self._gateway.generate_completion(
                connection,
                build_search_prompt(query, documents),
                system_prompt=SYSTEM_PROMPT,
                temperature=0.1,
                max_tokens=2000,
            )
        except (ConfigurationError, ProviderError) as exc:
            logger.warning("Search | semantic search unavailable, using keyword fallback: %s", exc)
            return keyword_fallback_search(query, documents, request.limit)

        data = extract_json_object(completion.content)
        try:
            reply = SearchReply.model_validate(data) if data is not None else None
        except ValidationError as exc:
            logger.info("Search | reply JSON did not match envelope: %s", exc.error_count())
            reply = None
        if reply is None:
            logger.info("Search | unparsable model reply, using keyword fallback")
            return keyword_fallback_search(query, documents, request.limit)

        results = join_semantic_results(reply, documents, request.limit)
        logger.info(
            "Search | semantic provider=%s candidates=%d hits=%d",
            completion.provider_name, len(documents), len(results),
        )
        return SearchResponse(
            results=results,
            query=query,
            total=len(results),
            summary=reply.summary,
            search_type="semantic",
            provider=completion.provider_name,
            usage=UsageView(
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens,
            ),
        )
