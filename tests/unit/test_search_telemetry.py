import pytest

from smart_retrieval.obs.tracing import RequestTracker
from smart_retrieval.retrieval.embedder import HashingEmbedder
from smart_retrieval.retrieval.search import SourceSearcher
from smart_retrieval.retrieval.vector_store import InMemoryVectorStore
from smart_retrieval.types import ALL_SOURCES, NO_SOURCES, DocumentChunk, ExplicitSources


class FailingEmbedder(HashingEmbedder):
    def embed_query(self, text: str) -> list[float]:
        raise ConnectionError("embedding endpoint unreachable")


def _chunks() -> list[DocumentChunk]:
    return [
        DocumentChunk("gr-1", "dune", "Dune review: five stars, a classic novel", {"source": "goodreads"}),
        DocumentChunk("gr-2", "hobbit", "The Hobbit rated four stars", {"source": "goodreads"}),
        DocumentChunk("pl-1", "inv-7", "Invoice 7 for plumbing repairs", {"source": "paperless"}),
        DocumentChunk("up-1", "notes", "Meeting notes about the novel club", {"source": "uploaded"}),
    ]


def _searcher(tracker: RequestTracker, embedder: HashingEmbedder | None = None) -> SourceSearcher:
    searcher = SourceSearcher(embedder or HashingEmbedder(), InMemoryVectorStore(), on_metrics=tracker.track)
    searcher.index(_chunks())
    return searcher


def test_source_filter_and_limit_are_applied() -> None:
    tracker = RequestTracker()
    searcher = _searcher(tracker)

    only_books = searcher("novel stars", 10, ExplicitSources(("goodreads",)))
    everything = searcher("novel stars", 3, ALL_SOURCES)
    unfiltered = searcher("novel stars", 10, NO_SOURCES)

    assert {r.source for r in only_books} == {"goodreads"}
    assert len(everything) == 3
    assert len(unfiltered) == 4
    assert [r.score for r in unfiltered] == sorted((r.score for r in unfiltered), reverse=True)
    assert only_books[0].metadata["chunk_id"].startswith("gr-")


def test_each_call_reports_one_metrics_record() -> None:
    tracker = RequestTracker()
    searcher = _searcher(tracker)

    searcher("plumbing invoice", 5, "paperless")
    searcher("plumbing invoice", 5, ["paperless", "uploaded"])

    assert len(tracker.calls) == 2
    first = tracker.calls[0].metrics
    assert first.call_type == "embedding"
    assert first.latency_ms >= 0.0
    assert first.prompt_tokens == 2
    assert first.payload["sources"] == ["paperless"]
    assert tracker.summary()["total_calls"] == 2
    assert tracker.summary()["failed_calls"] == 0


def test_failed_call_is_reported_and_reraised() -> None:
    tracker = RequestTracker()
    searcher = SourceSearcher(FailingEmbedder(), InMemoryVectorStore(), on_metrics=tracker.track)

    with pytest.raises(ConnectionError):
        searcher("anything", 5, ALL_SOURCES)

    assert tracker.calls[0].metrics.error == "embedding endpoint unreachable"
    assert tracker.summary()["failed_calls"] == 1


def test_empty_tracker_summary() -> None:
    assert RequestTracker().summary()["total_calls"] == 0
    assert RequestTracker().total_latency_ms == 0.0
