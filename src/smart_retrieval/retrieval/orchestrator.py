"""Adaptive retrieval: explicit override, direct hit, or probe-then-focus."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from smart_retrieval.analysis.classifier import QueryClassifier
from smart_retrieval.config import OrchestratorConfig
from smart_retrieval.types import (
    ALL_SOURCES,
    AllSources,
    AsyncSearchFn,
    ExplicitSources,
    QueryAnalysis,
    RetrievalOutcome,
    SearchFn,
    SearchResult,
    SourceFilter,
    SourceProbeScore,
    parse_source_filter,
)

logger = logging.getLogger(__name__)


class RetrievalOrchestrator:
    """Decides which sources to search and how many chunks to ask for.

    Decision order (each branch returns):
    1. Explicit caller filter: one search with the caller's sources; the
       classifier only contributes the chunk count.
    2. High-confidence classification with concrete sources: one search
       against the suggested sources.
    3. Two-stage search. A fixed-size probe over all sources is grouped by
       `metadata["source"]` and averaged; the final search is focused on the
       single best source, the best pair, or left on all sources depending on
       how far the leader is ahead.

    Search collaborator errors (including cancellation) are never caught here.
    """

    def __init__(
        self,
        classifier: QueryClassifier | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self.classifier = classifier or QueryClassifier()
        self.config = config or OrchestratorConfig()

    def retrieve(
        self,
        query: str,
        source_filter: SourceFilter | str | Sequence[str] | None,
        max_chunks: int | None,
        search_fn: SearchFn,
    ) -> RetrievalOutcome:
        source_filter = parse_source_filter(source_filter)
        limit = self._max_chunks(max_chunks)
        analysis = self.classifier.classify(query)

        plan = self._plan_single_search(analysis, source_filter, limit)
        if plan is not None:
            sources, chunk_count, strategy = plan
            results = list(search_fn(query, chunk_count, sources))
            return RetrievalOutcome(results, sources, chunk_count, strategy=strategy)

        logger.info("Low confidence or general query, doing two-stage search")
        probe = list(search_fn(query, self.config.probe_size, ALL_SOURCES))
        if not probe:
            return _empty_probe_outcome()

        probe_scores = self.score_probe(probe)
        focused = self.choose_focus(probe_scores)
        chunk_count = min(analysis.suggested_chunk_count, limit)
        results = list(search_fn(query, chunk_count, focused))
        return RetrievalOutcome(
            results, focused, chunk_count, strategy="two_stage", probe_scores=probe_scores
        )

    async def aretrieve(
        self,
        query: str,
        source_filter: SourceFilter | str | Sequence[str] | None,
        max_chunks: int | None,
        search_fn: AsyncSearchFn,
    ) -> RetrievalOutcome:
        """Awaitable twin of `retrieve`; the probe and focus calls stay sequential."""
        source_filter = parse_source_filter(source_filter)
        limit = self._max_chunks(max_chunks)
        analysis = self.classifier.classify(query)

        plan = self._plan_single_search(analysis, source_filter, limit)
        if plan is not None:
            sources, chunk_count, strategy = plan
            results = list(await search_fn(query, chunk_count, sources))
            return RetrievalOutcome(results, sources, chunk_count, strategy=strategy)

        logger.info("Low confidence or general query, doing two-stage search")
        probe = list(await search_fn(query, self.config.probe_size, ALL_SOURCES))
        if not probe:
            return _empty_probe_outcome()

        probe_scores = self.score_probe(probe)
        focused = self.choose_focus(probe_scores)
        chunk_count = min(analysis.suggested_chunk_count, limit)
        results = list(await search_fn(query, chunk_count, focused))
        return RetrievalOutcome(
            results, focused, chunk_count, strategy="two_stage", probe_scores=probe_scores
        )

    def score_probe(self, probe: Sequence[SearchResult]) -> list[SourceProbeScore]:
        """Aggregate probe hits per source, best average first.

        Results without a source land in the default bucket. Sorting is stable,
        so sources with equal averages keep first-seen order.
        """

        buckets: dict[str, SourceProbeScore] = {}
        for result in probe:
            source = result.source or self.config.default_source
            bucket = buckets.setdefault(source, SourceProbeScore(source=source))
            bucket.total_score += result.score
            bucket.count += 1

        ranked = sorted(buckets.values(), key=lambda item: item.avg_score, reverse=True)
        logger.info(
            "Probe results by source: %s",
            [
                {"source": item.source, "avg_score": round(item.avg_score, 3), "count": item.count}
                for item in ranked
            ],
        )
        return ranked

    def choose_focus(
        self, ranked: Sequence[SourceProbeScore]
    ) -> AllSources | ExplicitSources:
        cfg = self.config
        if len(ranked) < 2:
            logger.info("No clear winner, searching all sources")
            return ALL_SOURCES

        top, second = ranked[0], ranked[1]
        if (
            top.avg_score > second.avg_score * cfg.single_source_margin
            and top.count >= cfg.single_source_min_count
        ):
            logger.info("Top source '%s' significantly better, focusing search", top.source)
            return ExplicitSources((top.source,))

        if len(ranked) > 2 and top.avg_score > ranked[2].avg_score * cfg.pair_margin:
            logger.info("Top 2 sources better, focusing on: %s, %s", top.source, second.source)
            return ExplicitSources((top.source, second.source))

        logger.info("No clear winner, searching all sources")
        return ALL_SOURCES

    def _plan_single_search(
        self,
        analysis: QueryAnalysis,
        source_filter: SourceFilter,
        limit: int,
    ) -> tuple[ExplicitSources, int, str] | None:
        chunk_count = min(analysis.suggested_chunk_count, limit)
        if isinstance(source_filter, ExplicitSources):
            logger.info("Using caller-selected sources: %s", source_filter.describe())
            return source_filter, chunk_count, "explicit"
        # AllSources and NoSources both leave the choice to the classifier.

        suggested = analysis.suggested_sources
        if (
            analysis.confidence > self.config.high_confidence_threshold
            and isinstance(suggested, ExplicitSources)
        ):
            logger.info(
                "High confidence (%.2f), using suggested sources: %s",
                analysis.confidence,
                suggested.describe(),
            )
            return suggested, chunk_count, "direct"
        return None

    def _max_chunks(self, max_chunks: int | None) -> int:
        if max_chunks is None:
            return self.config.default_max_chunks
        if max_chunks < 1:
            raise ValueError("max_chunks must be >= 1")
        return max_chunks


def _empty_probe_outcome() -> RetrievalOutcome:
    return RetrievalOutcome([], ALL_SOURCES, 0, strategy="empty_probe")


_default_orchestrator = RetrievalOrchestrator()


def retrieve(
    query: str,
    source_filter: SourceFilter | str | Sequence[str] | None,
    max_chunks: int | None,
    search_fn: SearchFn,
) -> RetrievalOutcome:
    """Run the adaptive retrieval decision tree with default settings."""
    return _default_orchestrator.retrieve(query, source_filter, max_chunks, search_fn)
