"""Vector store contract and the in-memory reference index."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from smart_retrieval.retrieval.embedder import cosine_similarity
from smart_retrieval.types import DocumentChunk, ExplicitSources, SourceFilter


class VectorStore(Protocol):
    """Minimal vector store contract for source-filtered search."""

    def upsert(self, chunks: list[DocumentChunk], embeddings: list[list[float]]) -> None:
        """Insert or update chunk vectors."""

    def semantic_search(
        self,
        query_embedding: list[float],
        k: int,
        sources: SourceFilter,
    ) -> list[tuple[DocumentChunk, float]]:
        """Return up to `k` (chunk, score) pairs, best first."""


@dataclass(slots=True)
class _StoredVector:
    chunk: DocumentChunk
    embedding: list[float]


class InMemoryVectorStore:
    """Deterministic vector store used for tests and local prototyping."""

    def __init__(self) -> None:
        self._store: dict[str, _StoredVector] = {}

    def __len__(self) -> int:
        return len(self._store)

    def upsert(self, chunks: list[DocumentChunk], embeddings: list[list[float]]) -> None:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings must have the same length")
        for chunk, embedding in zip(chunks, embeddings, strict=True):
            self._store[chunk.chunk_id] = _StoredVector(chunk=chunk, embedding=embedding)

    def semantic_search(
        self,
        query_embedding: list[float],
        k: int,
        sources: SourceFilter,
    ) -> list[tuple[DocumentChunk, float]]:
        candidates = [
            rec for rec in self._store.values() if _source_match(rec.chunk, sources)
        ]
        ranked = sorted(
            (
                (record.chunk, cosine_similarity(query_embedding, record.embedding))
                for record in candidates
            ),
            key=lambda item: item[1],
            reverse=True,
        )
        return ranked[:k]


def _source_match(chunk: DocumentChunk, sources: SourceFilter) -> bool:
    # Only an explicit set narrows the search; "all" and "none" search everything.
    if not isinstance(sources, ExplicitSources):
        return True
    return chunk.metadata.get("source") in sources.sources
