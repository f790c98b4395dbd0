"""Marks which retrieved chunks an answer actually drew on."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from math import ceil, sqrt

from smart_retrieval.config import SourceAnalysisConfig
from smart_retrieval.retrieval.embedder import Embedder, cosine_similarity
from smart_retrieval.types import SearchResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SourceRelevance:
    result: SearchResult
    relevance_score: float
    is_referenced: bool


def analyze_referenced_sources(
    response: str,
    sources: list[SearchResult],
    embedder: Embedder,
    config: SourceAnalysisConfig | None = None,
) -> list[SourceRelevance]:
    """Score each source chunk against the final answer.

    A chunk counts as referenced when it is both in the top `top_fraction`
    of chunks by similarity and above the adaptive threshold
    `max(min_threshold, mean + std_weight * stddev)`. The best chunk is always
    marked when nothing else qualifies. Output is sorted by relevance.
    """

    cfg = config or SourceAnalysisConfig()
    if not response or not sources:
        return [SourceRelevance(result=s, relevance_score=0.0, is_referenced=False) for s in sources]

    try:
        response_embedding = embedder.embed_query(response)
        chunk_embeddings = embedder.embed_documents([s.content for s in sources])
    except Exception:
        # Decoration only; the answer has already been produced.
        logger.exception("Error analyzing referenced sources")
        return [SourceRelevance(result=s, relevance_score=0.0, is_referenced=False) for s in sources]

    scored = sorted(
        (
            SourceRelevance(
                result=source,
                relevance_score=cosine_similarity(response_embedding, embedding),
                is_referenced=False,
            )
            for source, embedding in zip(sources, chunk_embeddings, strict=True)
        ),
        key=lambda item: item.relevance_score,
        reverse=True,
    )

    scores = [item.relevance_score for item in scored]
    mean = sum(scores) / len(scores)
    std_dev = sqrt(sum((score - mean) ** 2 for score in scores) / len(scores))
    threshold = max(cfg.min_threshold, mean + cfg.std_weight * std_dev)
    top_n = max(1, ceil(len(sources) * cfg.top_fraction))

    for index, item in enumerate(scored):
        item.is_referenced = index < top_n and item.relevance_score >= threshold

    if not any(item.is_referenced for item in scored):
        scored[0].is_referenced = True

    return scored
