"""Chat-turn retrieval: route, then direct or adaptive search."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from smart_retrieval.analysis.router import QueryRouter, should_use_simple_search
from smart_retrieval.obs.tracing import Timer
from smart_retrieval.retrieval.embedder import Embedder, HashingEmbedder
from smart_retrieval.retrieval.iterative import (
    IterativeRetrievalAdvisor,
    RetrievalAdvice,
    retrieve_additional_context,
)
from smart_retrieval.retrieval.orchestrator import RetrievalOrchestrator
from smart_retrieval.retrieval.source_analysis import (
    SourceRelevance,
    analyze_referenced_sources,
)
from smart_retrieval.types import (
    ALL_SOURCES,
    ExplicitSources,
    NoSources,
    QueryRoute,
    RetrievalOutcome,
    RouteFlags,
    SearchFn,
    SearchResult,
    SourceFilter,
    parse_source_filter,
)

logger = logging.getLogger(__name__)

FAST_PATH_LIMIT = 10


@dataclass(slots=True)
class ChatRetrieval:
    route: QueryRoute
    outcome: RetrievalOutcome
    latency_ms: float


@dataclass(slots=True)
class FollowUp:
    advice: RetrievalAdvice
    results: list[SearchResult] = field(default_factory=list)


class ChatRetrievalPipeline:
    """Retrieves context for one chat turn and runs the post-answer steps.

    * a "none" filter disables retrieval for the turn;
    * an explicit filter goes to the orchestrator's override branch, which
      sizes the search from the classifier and caps it at `source_count`;
    * otherwise the router decides: fast path runs one direct search over all
      sources, slow path runs the full adaptive orchestrator.

    Follow-up retrieval and referenced-source analysis honour the route's
    skip flags, so a fast-path turn never reaches the advisor or the embedder.
    Query rephrasing belongs to the caller's context assembly.
    """

    def __init__(
        self,
        *,
        router: QueryRouter | None = None,
        orchestrator: RetrievalOrchestrator | None = None,
        advisor: IterativeRetrievalAdvisor | None = None,
        embedder: Embedder | None = None,
    ) -> None:
        self.router = router or QueryRouter()
        self.orchestrator = orchestrator or RetrievalOrchestrator()
        self.advisor = advisor or IterativeRetrievalAdvisor()
        self.embedder = embedder or HashingEmbedder()

    @property
    def max_chunks(self) -> int:
        return self.orchestrator.config.default_max_chunks

    def run(
        self,
        query: str,
        search_fn: SearchFn,
        *,
        is_first_message: bool = True,
        history: Sequence[Any] | None = None,
        source_filter: SourceFilter | str | Sequence[str] | None = None,
        source_count: int | None = None,
    ) -> ChatRetrieval:
        source_filter = parse_source_filter(source_filter)
        max_chunks = self._clamp(source_count)
        query_route = self.router.route(query, is_first_message, history)

        with Timer() as timer:
            if isinstance(source_filter, NoSources):
                outcome = RetrievalOutcome([], source_filter, 0, strategy="disabled")
            elif isinstance(source_filter, ExplicitSources):
                outcome = self.orchestrator.retrieve(query, source_filter, max_chunks, search_fn)
            elif should_use_simple_search(query_route):
                logger.info("Fast path: using direct search")
                limit = min(FAST_PATH_LIMIT, max_chunks)
                results = list(search_fn(query, limit, ALL_SOURCES))
                outcome = RetrievalOutcome(results, ALL_SOURCES, limit, strategy="fast_path")
            else:
                outcome = self.orchestrator.retrieve(query, None, max_chunks, search_fn)

        return ChatRetrieval(
            route=query_route,
            outcome=outcome,
            latency_ms=timer.elapsed_ms,
        )

    def retrieve_more(
        self,
        flags: RouteFlags,
        query: str,
        partial_response: str,
        existing: Sequence[SearchResult],
        used_sources: SourceFilter | str | Sequence[str] | None,
        search_fn: SearchFn,
        *,
        max_chunks: int | None = None,
    ) -> FollowUp:
        if flags.skip_iterative_retrieval:
            logger.debug("Skipping iterative retrieval for this route")
            return FollowUp(RetrievalAdvice(should_retrieve=False, reason="skipped for fast path"))

        advice = self.advisor.should_retrieve_more(
            query, partial_response, len(existing), self._clamp(max_chunks)
        )
        if not (advice.should_retrieve and advice.suggested_count):
            return FollowUp(advice)

        results = retrieve_additional_context(
            self.orchestrator,
            query,
            existing,
            used_sources,
            advice.suggested_count,
            search_fn,
        )
        return FollowUp(advice, results)

    def referenced_sources(
        self, flags: RouteFlags, response: str, sources: Sequence[SearchResult]
    ) -> list[SourceRelevance]:
        if flags.skip_source_analysis:
            return [SourceRelevance(result=s, relevance_score=0.0, is_referenced=False) for s in sources]
        return analyze_referenced_sources(response, list(sources), self.embedder)

    def _clamp(self, requested: int | None) -> int:
        return max(1, min(self.max_chunks, requested or self.max_chunks))
