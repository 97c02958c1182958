"""
Query Orchestrator: natural-language questions over processed documents

  ┌───────────────────────────────────────────────────────────────┐
  │ 1. QueryRecord(status=PROCESSING)                             │
  │ 2. resolve_provider()        → ConfigurationError (400)       │
  │ 3. context: ≤10 newest COMPLETED docs (∩ requested ids)       │
  │ 4. gateway.generate_completion(system + user prompt)          │
  │        failure → record ERROR, FailureSummary (400 | 500)     │
  │ 5. parse QueryEnvelope, else fallback envelope (conf. 75)     │
  │ 6. record COMPLETED with envelope, tokens, timing             │
  └───────────────────────────────────────────────────────────────┘

A reply that is not the requested JSON is never an error: the raw text
becomes the answer of a fallback envelope.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Sequence

from pydantic import ValidationError

from documind.core.errors import ConfigurationError, FailureSummary, ProviderError, describe_failure
from documind.db.repositories import DocumentRepository, ProviderConfigRepository, QueryRepository
from documind.events.sink import EventSink, QueryEvent, publish
from documind.llm.adapters import TokenUsage
from documind.llm.gateway import CompletionGateway
from documind.models.entities import Document, QueryRecord, QueryStatus, User
from documind.schemas.envelopes import QueryEnvelope
from documind.security.credentials import to_connection
from documind.services.providers import resolve_provider
from documind.services.replies import extract_json_object

logger = logging.getLogger(__name__)

CONTEXT_LIMIT         = 10
DEFAULT_TEMPERATURE   = 0.3
DEFAULT_MAX_TOKENS    = 1000
QUERY_FAILED_MESSAGE  = "Failed to process query with AI"

SYSTEM_PROMPT = """You are an expert document analysis assistant with deep knowledge of contracts, claims, policies, and compliance requirements. Analyze the following query and provide insights based on the provided document context.

Provide your response in the following JSON format:
{
  "answer": "Direct answer to the query",
  "insights": ["insight 1", "insight 2", ...],
  "patterns": ["pattern 1", "pattern 2", ...],
  "confidence": 85,
  "relevantDocuments": ["doc1.pdf", "doc2.pdf", ...]
}"""


def build_user_prompt(query: str, documents: Sequence[Document]) -> str:
    sections = "\n".join(
        f"Document {i}: {doc.name}\nCategory: {doc.category or ''}\nContent: {doc.content or ''}\n"
        for i, doc in enumerate(documents, start=1)
    )
    return (
        f"Query: {query}\n\n"
        f"Document Context:\n{sections}\n"
        "Please provide a comprehensive analysis of the query based on the document context."
    )


def parse_envelope(raw_text: str, context_names: list[str]) -> tuple[QueryEnvelope, bool]:
    """
    Read the model reply as a QueryEnvelope.

    Returns (envelope, parsed). parsed is False when the fallback envelope
    was synthesised from the raw text.
    """
    data = extract_json_object(raw_text)
    if data is not None:
        try:
            return QueryEnvelope.model_validate(data), True
        except ValidationError as exc:
            logger.info("Query | reply JSON did not match envelope: %s", exc.error_count())
    return QueryEnvelope.fallback(raw_text, context_names), False


@dataclass
class QueryOutcome:
    record:        QueryRecord
    envelope:      QueryEnvelope | None = None
    provider_name: str | None = None
    usage:         TokenUsage | None = None
    failure:       FailureSummary | None = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None


class QueryOrchestrator:
    """
    One instance per request; the gateway is the application's shared one.

    Usage:
        outcome = await QueryOrchestrator(documents, queries, configs, gateway).run(owner, "…")
    """

    def __init__(
        self,
        documents: DocumentRepository,
        queries:   QueryRepository,
        configs:   ProviderConfigRepository,
        gateway:   CompletionGateway,
        sink:      EventSink | None = None,
    ) -> None:
        self._documents = documents
        self._queries   = queries
        self._configs   = configs
        self._gateway   = gateway
        self._sink      = sink

    async def run(
        self,
        owner:        User,
        query:        str,
        document_ids: list[str] | None = None,
        provider_id:  str | None = None,
    ) -> QueryOutcome:
        """
        Answer one query.

        Raises:
            ConfigurationError: no provider config resolves (record → ERROR)
            PersistenceError:   a store read/write failed
        Gateway failures do not raise; they come back in QueryOutcome.failure.
        """
        record = QueryRecord(
            id=uuid.uuid4(),
            query=query,
            document_ids=list(document_ids or []),
            status=QueryStatus.PROCESSING.value,
            user_id=owner.id,
        )
        await self._queries.create(record)
        await publish(self._sink, QueryEvent(query_id=str(record.id), status="processing", query=query))

        t0 = time.perf_counter()
        try:
            config = await resolve_provider(self._configs, owner, provider_id)
            connection = to_connection(config)
        except ConfigurationError:
            await self._finish_error(record, t0)
            raise
        record.provider_id = str(config.id)

        documents = await self._documents.recent_completed(
            CONTEXT_LIMIT,
            ids=document_ids or None,
        )
        names = [d.name for d in documents]

        try:
            result = await self._gateway.generate_completion(
                connection,
                build_user_prompt(query, documents),
                system_prompt=SYSTEM_PROMPT,
                temperature=connection.temperature or DEFAULT_TEMPERATURE,
                max_tokens=connection.max_tokens or DEFAULT_MAX_TOKENS,
            )
        except (ConfigurationError, ProviderError) as exc:
            summary = describe_failure(exc, QUERY_FAILED_MESSAGE)
            log = logger.warning if summary.is_client_error else logger.error
            log(
                "Query | id=%s provider=%s failed status=%d: %s",
                record.id, connection.name, summary.http_status, exc,
            )
            await self._finish_error(record, t0)
            return QueryOutcome(record=record, provider_name=connection.name, failure=summary)

        envelope, parsed = parse_envelope(result.content, names)
        record.status          = QueryStatus.COMPLETED.value
        record.response        = envelope.to_wire()
        record.result_count    = len(envelope.relevant_documents)
        record.tokens_used     = result.usage.total_tokens
        record.processing_time = _elapsed_ms(t0)
        await self._queries.save(record)

        logger.info(
            "Query | id=%s provider=%s docs=%d parsed=%s tokens=%d ms=%d",
            record.id, connection.name, len(documents), parsed,
            record.tokens_used, record.processing_time,
        )
        await publish(self._sink, QueryEvent(query_id=str(record.id), status="completed", query=query))
        return QueryOutcome(
            record=record,
            envelope=envelope,
            provider_name=result.provider_name,
            usage=result.usage,
        )

    async def _finish_error(self, record: QueryRecord, t0: float) -> None:
        record.status          = QueryStatus.ERROR.value
        record.response        = {"error": "AI processing failed"}
        record.processing_time = _elapsed_ms(t0)
        await self._queries.save(record)
        await publish(self._sink, QueryEvent(query_id=str(record.id), status="error", query=record.query))


def _elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)
