"""Configuration models for the retrieval decision engine."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from smart_retrieval.types import SourceId


class ClassifierConfig(BaseModel):
    """Vocabularies and scoring constants used by the query classifier."""

    model_config = ConfigDict(frozen=True)

    book_keywords: tuple[str, ...] = (
        "book",
        "books",
        "read",
        "reading",
        "author",
        "novel",
        "story",
        "chapter",
        "goodreads",
        "rated",
        "rating",
        "review",
        "fiction",
        "non-fiction",
        "memoir",
        "biography",
    )
    document_keywords: tuple[str, ...] = (
        "document",
        "documents",
        "file",
        "files",
        "pdf",
        "paperless",
        "invoice",
        "receipt",
        "tax",
        "contract",
        "report",
        "form",
        "letter",
        "memo",
        "correspondence",
    )
    book_sources: tuple[SourceId, ...] = (SourceId.GOODREADS,)
    document_sources: tuple[SourceId, ...] = (
        SourceId.PAPERLESS,
        SourceId.UPLOADED,
        SourceId.SYNCED,
    )
    complex_markers: tuple[str, ...] = ("?", "how", "why", "explain")

    base_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    confidence_per_match: float = Field(default=0.15, ge=0.0, le=1.0)
    max_confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    mixed_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    general_confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    simple_max_words: int = Field(default=5, ge=0)
    moderate_max_words: int = Field(default=15, ge=1)
    simple_chunks: int = Field(default=5, ge=1)
    moderate_chunks: int = Field(default=10, ge=1)
    complex_chunks: int = Field(default=20, ge=1)
    book_simple_min_chunks: int = Field(default=5, ge=1)

    @model_validator(mode="after")
    def _check_sources(self) -> "ClassifierConfig":
        if not self.book_sources or not self.document_sources:
            raise ValueError("book_sources and document_sources must be non-empty")
        return self


class RouterConfig(BaseModel):
    """Signal patterns and weights for fast/slow path routing."""

    model_config = ConfigDict(frozen=True)

    short_max_words: int = Field(default=8, ge=1)
    long_over_words: int = Field(default=20, ge=1)

    definitional_pattern: str = r"^(what is|who is|when is|where is|define)"
    context_marker_pattern: str = (
        r"(it|this|that|these|those|they|them|he|she|his|her|their"
        r"|what about|how about|and)"
    )
    counting_pattern: str = r"\b(how many|count|total|number of)\b"
    list_pattern: str = r"^(list|show me|give me|find)\s"
    analytical_pattern: str = r"\b(why|how|explain|analyze|compare|discuss|elaborate)\b"
    clause_separators: tuple[str, ...] = (" and ", " or ", "; ")

    short_weight: int = 3
    definitional_weight: int = 2
    self_contained_weight: int = 2
    counting_weight: int = 2
    list_weight: int = 1
    first_message_weight: int = 1

    analytical_weight: int = 3
    multi_part_weight: int = 3
    clauses_weight: int = 2
    long_weight: int = 2
    needs_context_weight: int = 2


class OrchestratorConfig(BaseModel):
    """Two-stage probe/focus constants.

    The multipliers and the minimum count were never tuned offline; changing
    them changes which sources a query is focused on.
    """

    model_config = ConfigDict(frozen=True)

    probe_size: int = Field(default=10, ge=1)
    high_confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    single_source_margin: float = Field(default=1.15, gt=0.0)
    single_source_min_count: int = Field(default=2, ge=1)
    pair_margin: float = Field(default=1.2, gt=0.0)
    default_source: str = SourceId.SYNCED.value
    default_max_chunks: int = Field(default=35, ge=1)


class IterativeConfig(BaseModel):
    """Controls the follow-up retrieval advisor."""

    model_config = ConfigDict(frozen=True)

    uncertainty_phrases: tuple[str, ...] = (
        "i don't have",
        "i don't see",
        "i cannot find",
        "i'm not sure",
        "i don't know",
        "no information",
        "not enough information",
        "insufficient",
        "unable to find",
        "cannot determine",
        "more context needed",
        "need more details",
    )
    default_additional_chunks: int = Field(default=5, ge=1)
    response_preview_chars: int = Field(default=500, ge=1)


class SourceAnalysisConfig(BaseModel):
    """Adaptive thresholding used when marking referenced sources."""

    model_config = ConfigDict(frozen=True)

    min_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    std_weight: float = Field(default=0.5, ge=0.0)
    top_fraction: float = Field(default=0.4, gt=0.0, le=1.0)
