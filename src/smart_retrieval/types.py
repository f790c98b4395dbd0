"""Shared domain models."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, TypeAlias


class SourceId(str, Enum):
    """Content origins the knowledge base can retrieve from."""

    UPLOADED = "uploaded"
    SYNCED = "synced"
    PAPERLESS = "paperless"
    GOODREADS = "goodreads"


class QueryType(str, Enum):
    BOOK = "book"
    DOCUMENT = "document"
    GENERAL = "general"
    MIXED = "mixed"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class RoutePath(str, Enum):
    FAST = "fast"
    SLOW = "slow"


@dataclass(frozen=True, slots=True)
class AllSources:
    """Search every known source."""

    def describe(self) -> str | list[str]:
        return "all"


@dataclass(frozen=True, slots=True)
class NoSources:
    """Caller explicitly opted out of source selection."""

    def describe(self) -> str | list[str]:
        return "none"


@dataclass(frozen=True, slots=True)
class ExplicitSources:
    """A concrete, ordered, non-empty set of source identifiers."""

    sources: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.sources:
            raise ValueError("ExplicitSources requires at least one source")
        # Preserve first-seen order while dropping duplicates.
        object.__setattr__(self, "sources", tuple(dict.fromkeys(self.sources)))

    def describe(self) -> str | list[str]:
        return list(self.sources)


SourceFilter: TypeAlias = AllSources | NoSources | ExplicitSources

ALL_SOURCES = AllSources()
NO_SOURCES = NoSources()


def explicit(sources: Iterable[str | SourceId]) -> ExplicitSources:
    return ExplicitSources(tuple(_source_value(source) for source in sources))


def parse_source_filter(raw: Any) -> SourceFilter:
    """Normalize the loose source-filter shapes callers send.

    Accepts `None`, `"all"`, `"none"`, a single source identifier, a list of
    identifiers, or an already-built filter. An empty list means "all".
    """

    if isinstance(raw, AllSources | NoSources | ExplicitSources):
        return raw
    if raw is None:
        return ALL_SOURCES
    if isinstance(raw, str | SourceId):
        value = _source_value(raw).strip()
        if value.lower() in {"", "all"}:
            return ALL_SOURCES
        if value.lower() == "none":
            return NO_SOURCES
        return ExplicitSources((value,))
    values = [_source_value(item) for item in raw]
    if not values:
        return ALL_SOURCES
    return ExplicitSources(tuple(values))


def _source_value(source: str | SourceId) -> str:
    return source.value if isinstance(source, SourceId) else str(source)


@dataclass(frozen=True, slots=True)
class QueryAnalysis:
    """Classifier output describing what a query is about."""

    query_type: QueryType
    complexity: Complexity
    suggested_sources: AllSources | ExplicitSources
    suggested_chunk_count: int
    confidence: float
    keywords: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RouteFlags:
    skip_rephrasing: bool
    skip_iterative_retrieval: bool
    skip_source_analysis: bool
    use_two_stage_search: bool


_FAST_FLAGS = RouteFlags(
    skip_rephrasing=True,
    skip_iterative_retrieval=True,
    skip_source_analysis=True,
    use_two_stage_search=False,
)
_SLOW_FLAGS = RouteFlags(
    skip_rephrasing=False,
    skip_iterative_retrieval=False,
    skip_source_analysis=False,
    use_two_stage_search=True,
)


def route_flags(path: RoutePath) -> RouteFlags:
    """Map a routing path to the downstream skip/use switches."""
    if path is RoutePath.FAST:
        return _FAST_FLAGS
    return _SLOW_FLAGS


@dataclass(frozen=True, slots=True)
class QueryRoute:
    """Router output. Only `path` is stored; the switches derive from it."""

    path: RoutePath
    reason: str
    fast_score: int = 0
    slow_score: int = 0

    @property
    def flags(self) -> RouteFlags:
        return route_flags(self.path)

    @property
    def skip_rephrasing(self) -> bool:
        return self.flags.skip_rephrasing

    @property
    def skip_iterative_retrieval(self) -> bool:
        return self.flags.skip_iterative_retrieval

    @property
    def skip_source_analysis(self) -> bool:
        return self.flags.skip_source_analysis

    @property
    def use_two_stage_search(self) -> bool:
        return self.flags.use_two_stage_search


@dataclass(slots=True)
class SearchResult:
    """A ranked item returned by the search collaborator."""

    content: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def source(self) -> str | None:
        value = self.metadata.get("source")
        return _source_value(value) if value else None


@dataclass(slots=True)
class SourceProbeScore:
    """Per-source aggregate of one probe search."""

    source: str
    total_score: float = 0.0
    count: int = 0

    @property
    def avg_score(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total_score / self.count


@dataclass(slots=True)
class RetrievalOutcome:
    """Final ranked context set plus bookkeeping for the caller."""

    results: list[SearchResult]
    used_sources: SourceFilter
    chunk_count: int
    strategy: str = "two_stage"
    probe_scores: list[SourceProbeScore] = field(default_factory=list)


@dataclass(slots=True)
class CallMetrics:
    """Telemetry for one underlying embedding/search call."""

    call_type: str
    latency_ms: float
    prompt_tokens: int = 0
    completion_tokens: int = 0
    model: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


MetricsCallback: TypeAlias = Callable[[CallMetrics], None]


class SearchFn(Protocol):
    """Ranked-search collaborator: results ordered by descending score."""

    def __call__(
        self, query: str, limit: int, sources: SourceFilter
    ) -> Sequence[SearchResult]:
        ...


class AsyncSearchFn(Protocol):
    def __call__(
        self, query: str, limit: int, sources: SourceFilter
    ) -> Awaitable[Sequence[SearchResult]]:
        ...


@dataclass(slots=True)
class DocumentChunk:
    """An already-chunked piece of content held by the reference index."""

    chunk_id: str
    doc_id: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
