"""Reference search collaborator over an embedder and a vector store."""

from __future__ import annotations

import asyncio
import logging

from smart_retrieval.obs.tracing import Timer, estimate_token_count
from smart_retrieval.retrieval.embedder import Embedder
from smart_retrieval.retrieval.vector_store import VectorStore
from smart_retrieval.types import (
    CallMetrics,
    DocumentChunk,
    MetricsCallback,
    SearchResult,
    SourceFilter,
    parse_source_filter,
)

logger = logging.getLogger(__name__)


class SourceSearcher:
    """Source-filtered ranked search usable as the orchestrator's `search_fn`.

    Each call embeds the query once, queries the vector store and reports one
    `CallMetrics` record to the optional telemetry hook. Failures are reported
    to the hook with `error` set and then re-raised unchanged.
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        *,
        on_metrics: MetricsCallback | None = None,
        model_name: str = "hashing",
    ) -> None:
        self.embedder = embedder
        self.vector_store = vector_store
        self.on_metrics = on_metrics
        self.model_name = model_name

    def index(self, chunks: list[DocumentChunk]) -> None:
        embeddings = self.embedder.embed_documents([chunk.text for chunk in chunks])
        self.vector_store.upsert(chunks, embeddings)

    def __call__(
        self, query: str, limit: int, sources: SourceFilter | str | list[str] | None
    ) -> list[SearchResult]:
        source_filter = parse_source_filter(sources)
        error: str | None = None
        timer = Timer()
        try:
            with timer:
                query_embedding = self.embedder.embed_query(query)
                hits = self.vector_store.semantic_search(
                    query_embedding=query_embedding,
                    k=limit,
                    sources=source_filter,
                )
        except Exception as exc:
            error = str(exc)
            raise
        finally:
            self._report(query, limit, source_filter, timer.elapsed_ms, error)

        logger.debug(
            "Search returned %d hits (limit=%d, sources=%s)",
            len(hits),
            limit,
            source_filter.describe(),
        )
        return [
            SearchResult(
                content=chunk.text,
                score=score,
                metadata={**chunk.metadata, "chunk_id": chunk.chunk_id, "doc_id": chunk.doc_id},
            )
            for chunk, score in hits
        ]

    async def asearch(
        self, query: str, limit: int, sources: SourceFilter | str | list[str] | None
    ) -> list[SearchResult]:
        return await asyncio.to_thread(self, query, limit, sources)

    def _report(
        self,
        query: str,
        limit: int,
        sources: SourceFilter,
        latency_ms: float,
        error: str | None,
    ) -> None:
        if self.on_metrics is None:
            return
        self.on_metrics(
            CallMetrics(
                call_type="embedding",
                latency_ms=latency_ms,
                prompt_tokens=estimate_token_count(query),
                model=self.model_name,
                payload={
                    "query_length": len(query),
                    "limit": limit,
                    "sources": sources.describe(),
                },
                error=error,
            )
        )
