"""Keyword-driven query classification for source and chunk-count selection."""

from __future__ import annotations

import logging

from smart_retrieval.config import ClassifierConfig
from smart_retrieval.types import (
    ALL_SOURCES,
    Complexity,
    QueryAnalysis,
    QueryType,
    explicit,
)

logger = logging.getLogger(__name__)


class QueryClassifier:
    """Guesses the domain and complexity of a query from its wording.

    Matching is plain case-insensitive substring containment against the whole
    query, so multi-word vocabulary entries (and inflections such as "novels"
    for "novel") match without tokenization. The classifier is total: any
    input, including the empty string, yields a best-effort analysis.
    """

    def __init__(self, config: ClassifierConfig | None = None) -> None:
        self.config = config or ClassifierConfig()

    def classify(self, query: str) -> QueryAnalysis:
        cfg = self.config
        lower_query = (query or "").lower()
        word_count = len(lower_query.split())

        book_matches = [kw for kw in cfg.book_keywords if kw in lower_query]
        doc_matches = [kw for kw in cfg.document_keywords if kw in lower_query]

        if book_matches and not doc_matches:
            query_type = QueryType.BOOK
            confidence = self._match_confidence(len(book_matches))
            suggested_sources = explicit(cfg.book_sources)
        elif doc_matches and not book_matches:
            query_type = QueryType.DOCUMENT
            confidence = self._match_confidence(len(doc_matches))
            suggested_sources = explicit(cfg.document_sources)
        elif book_matches and doc_matches:
            query_type = QueryType.MIXED
            confidence = cfg.mixed_confidence
            suggested_sources = ALL_SOURCES
        else:
            query_type = QueryType.GENERAL
            confidence = cfg.general_confidence
            suggested_sources = ALL_SOURCES

        complexity = self._complexity(lower_query, word_count)
        chunk_count = self._chunk_count(complexity)
        if query_type is QueryType.BOOK and complexity is Complexity.SIMPLE:
            # Short book questions still need a few reviews/ratings for context.
            chunk_count = max(chunk_count, cfg.book_simple_min_chunks)

        logger.debug(
            "Query analysis: type=%s complexity=%s sources=%s chunks=%d "
            "confidence=%.2f book_matches=%d doc_matches=%d",
            query_type.value,
            complexity.value,
            suggested_sources.describe(),
            chunk_count,
            confidence,
            len(book_matches),
            len(doc_matches),
        )

        return QueryAnalysis(
            query_type=query_type,
            complexity=complexity,
            suggested_sources=suggested_sources,
            suggested_chunk_count=chunk_count,
            confidence=confidence,
            keywords=[*book_matches, *doc_matches],
        )

    def _match_confidence(self, match_count: int) -> float:
        cfg = self.config
        return min(cfg.max_confidence, cfg.base_confidence + cfg.confidence_per_match * match_count)

    def _complexity(self, lower_query: str, word_count: int) -> Complexity:
        if word_count <= self.config.simple_max_words:
            return Complexity.SIMPLE
        if word_count > self.config.moderate_max_words or any(
            marker in lower_query for marker in self.config.complex_markers
        ):
            return Complexity.COMPLEX
        return Complexity.MODERATE

    def _chunk_count(self, complexity: Complexity) -> int:
        if complexity is Complexity.SIMPLE:
            return self.config.simple_chunks
        if complexity is Complexity.COMPLEX:
            return self.config.complex_chunks
        return self.config.moderate_chunks


_default_classifier = QueryClassifier()


def classify(query: str) -> QueryAnalysis:
    """Classify with the default vocabularies."""
    return _default_classifier.classify(query)
