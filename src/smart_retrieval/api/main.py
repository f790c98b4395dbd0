"""FastAPI entrypoint exposing the retrieval engine for diagnostics."""

from __future__ import annotations

import logging
import os
from collections import deque
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from smart_retrieval.analysis.classifier import QueryClassifier
from smart_retrieval.analysis.router import QueryRouter
from smart_retrieval.config import OrchestratorConfig
from smart_retrieval.obs.tracing import RequestTracker, TrackedCall
from smart_retrieval.pipeline import ChatRetrievalPipeline
from smart_retrieval.retrieval.embedder import HashingEmbedder
from smart_retrieval.retrieval.iterative import IterativeRetrievalAdvisor
from smart_retrieval.retrieval.orchestrator import RetrievalOrchestrator
from smart_retrieval.retrieval.search import SourceSearcher
from smart_retrieval.retrieval.vector_store import InMemoryVectorStore
from smart_retrieval.types import (
    DocumentChunk,
    RetrievalOutcome,
    RoutePath,
    SearchResult,
    route_flags,
)

logger = logging.getLogger(__name__)

METRICS_WINDOW = 1000


def _create_llm() -> Any:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=os.getenv("OPENAI_FAST_MODEL", "gpt-4o-mini"), temperature=0)


def _max_chunks_from_env() -> int:
    raw = os.getenv("SMART_RETRIEVAL_MAX_CHUNKS", "35")
    try:
        return max(1, int(raw))
    except ValueError:
        logger.warning("Ignoring invalid SMART_RETRIEVAL_MAX_CHUNKS=%r", raw)
        return 35


class QueryRequest(BaseModel):
    query: str = Field(min_length=1)


class RouteRequest(BaseModel):
    query: str = Field(min_length=1)
    is_first_message: bool = True
    history: list[Any] = Field(default_factory=list)


class ChunkPayload(BaseModel):
    chunk_id: str = Field(min_length=1)
    doc_id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    source: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentsRequest(BaseModel):
    chunks: list[ChunkPayload] = Field(min_length=1)


class RetrieveRequest(BaseModel):
    query: str = Field(min_length=1)
    is_first_message: bool = True
    history: list[Any] = Field(default_factory=list)
    source_filter: str | list[str] | None = None
    source_count: int | None = Field(default=None, ge=1)


class ResultPayload(BaseModel):
    content: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class MoreContextRequest(BaseModel):
    query: str = Field(min_length=1)
    partial_response: str
    existing: list[ResultPayload] = Field(default_factory=list)
    used_sources: str | list[str] = "all"
    max_chunks: int | None = Field(default=None, ge=1)
    path: RoutePath = RoutePath.SLOW


class SourceAnalysisRequest(BaseModel):
    response: str
    sources: list[ResultPayload] = Field(default_factory=list)
    path: RoutePath = RoutePath.SLOW


app = FastAPI(title="Smart Retrieval Engine", version="0.1.0")

_max_chunks = _max_chunks_from_env()
_embedder = HashingEmbedder()
_vector_store = InMemoryVectorStore()
_searcher = SourceSearcher(_embedder, _vector_store)
_recent_calls: deque[TrackedCall] = deque(maxlen=METRICS_WINDOW)

_classifier = QueryClassifier()
_router = QueryRouter()
_llm = _create_llm()


def _create_pipeline(max_chunks: int) -> ChatRetrievalPipeline:
    return ChatRetrievalPipeline(
        router=_router,
        orchestrator=RetrievalOrchestrator(
            _classifier, OrchestratorConfig(default_max_chunks=max_chunks)
        ),
        advisor=IterativeRetrievalAdvisor(llm=_llm),
        embedder=_embedder,
    )


_pipeline = _create_pipeline(_max_chunks)


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "llm_configured": _llm is not None,
        "indexed_chunks": len(_vector_store),
        "max_chunks": _pipeline.max_chunks,
    }


@app.post("/classify")
def classify(request: QueryRequest) -> dict[str, Any]:
    analysis = _classifier.classify(request.query)
    return {
        "query_type": analysis.query_type.value,
        "complexity": analysis.complexity.value,
        "suggested_sources": analysis.suggested_sources.describe(),
        "suggested_chunk_count": analysis.suggested_chunk_count,
        "confidence": analysis.confidence,
        "keywords": analysis.keywords,
    }


@app.post("/route")
def route(request: RouteRequest) -> dict[str, Any]:
    query_route = _router.route(request.query, request.is_first_message, request.history)
    return {
        "path": query_route.path.value,
        "reason": query_route.reason,
        "fast_score": query_route.fast_score,
        "slow_score": query_route.slow_score,
        **asdict(query_route.flags),
    }


@app.post("/documents")
def add_documents(request: DocumentsRequest) -> dict[str, Any]:
    chunks = [
        DocumentChunk(
            chunk_id=item.chunk_id,
            doc_id=item.doc_id,
            text=item.text,
            metadata={**item.metadata, "source": item.source},
        )
        for item in request.chunks
    ]
    _searcher.index(chunks)
    return {"chunks_indexed": len(chunks), "indexed_chunks": len(_vector_store)}


@app.post("/retrieve")
def retrieve(request: RetrieveRequest) -> dict[str, Any]:
    tracker = RequestTracker(request_type="retrieve")
    try:
        retrieval = _pipeline.run(
            request.query,
            _request_searcher(tracker),
            is_first_message=request.is_first_message,
            history=request.history,
            source_filter=request.source_filter,
            source_count=request.source_count,
        )
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        _recent_calls.extend(tracker.calls)

    return {
        "path": retrieval.route.path.value,
        "reason": retrieval.route.reason,
        "latency_ms": retrieval.latency_ms,
        **_outcome_payload(retrieval.outcome),
        "telemetry": tracker.summary(),
    }


@app.post("/retrieve/more")
def retrieve_more(request: MoreContextRequest) -> dict[str, Any]:
    tracker = RequestTracker(request_type="retrieve_more")
    try:
        follow_up = _pipeline.retrieve_more(
            route_flags(request.path),
            request.query,
            request.partial_response,
            [_to_result(item) for item in request.existing],
            request.used_sources,
            _request_searcher(tracker),
            max_chunks=request.max_chunks,
        )
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        _recent_calls.extend(tracker.calls)

    return {
        "should_retrieve": follow_up.advice.should_retrieve,
        "reason": follow_up.advice.reason,
        "suggested_count": follow_up.advice.suggested_count,
        "results": [_result_payload(result) for result in follow_up.results],
        "telemetry": tracker.summary(),
    }


@app.post("/sources/analyze")
def analyze_sources(request: SourceAnalysisRequest) -> dict[str, Any]:
    analyzed = _pipeline.referenced_sources(
        route_flags(request.path),
        request.response,
        [_to_result(item) for item in request.sources],
    )
    return {
        "items": [
            {
                **_result_payload(item.result),
                "relevance_score": item.relevance_score,
                "is_referenced": item.is_referenced,
            }
            for item in analyzed
        ]
    }


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    """Summary over the most recent `METRICS_WINDOW` collaborator calls."""
    return RequestTracker(request_type="service", calls=list(_recent_calls)).summary()


def _request_searcher(tracker: RequestTracker) -> SourceSearcher:
    return SourceSearcher(_embedder, _vector_store, on_metrics=tracker.track)


def _outcome_payload(outcome: RetrievalOutcome) -> dict[str, Any]:
    return {
        "strategy": outcome.strategy,
        "used_sources": outcome.used_sources.describe(),
        "chunk_count": outcome.chunk_count,
        "probe_scores": [
            {"source": item.source, "avg_score": item.avg_score, "count": item.count}
            for item in outcome.probe_scores
        ],
        "results": [_result_payload(result) for result in outcome.results],
    }


def _result_payload(result: SearchResult) -> dict[str, Any]:
    return {"content": result.content, "score": result.score, "metadata": result.metadata}


def _to_result(item: ResultPayload) -> SearchResult:
    return SearchResult(content=item.content, score=item.score, metadata=dict(item.metadata))
