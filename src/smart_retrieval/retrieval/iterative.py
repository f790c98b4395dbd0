"""Follow-up retrieval when a draft answer signals missing context."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from langchain_core.messages import HumanMessage

from smart_retrieval.config import IterativeConfig
from smart_retrieval.retrieval.orchestrator import RetrievalOrchestrator
from smart_retrieval.types import (
    AllSources,
    SearchFn,
    SearchResult,
    SourceFilter,
    parse_source_filter,
)

logger = logging.getLogger(__name__)

_ANALYSIS_PROMPT = """
Analyze this Q&A interaction and determine if retrieving more document chunks would help provide a better answer.

User Question: {query}

Current Response (partial): {response}

Current chunks retrieved: {current}
Maximum allowed: {maximum}

Respond with ONLY a JSON object (no other text) in this exact format:
{{
  "shouldRetrieve": true/false,
  "reason": "brief explanation",
  "suggestedCount": number between 1-10
}}

Guidelines:
- Return shouldRetrieve: true ONLY if more document chunks would likely help
- Return shouldRetrieve: false if: the answer is already satisfactory, the question is unanswerable, or no relevant documents exist
- Keep reason brief (10 words or less)
- suggestedCount should be 3-5 for targeted info, 8-10 for broad context
""".strip()

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True, slots=True)
class RetrievalAdvice:
    should_retrieve: bool
    reason: str | None = None
    suggested_count: int | None = None


class IterativeRetrievalAdvisor:
    """Decides whether a partial answer warrants another retrieval round.

    A cheap phrase check runs first; only responses that sound uncertain are
    sent to the optional fast chat model (any LangChain chat model). Without a
    model the phrase check alone decides.
    """

    def __init__(self, llm: Any | None = None, config: IterativeConfig | None = None) -> None:
        self.llm = llm
        self.config = config or IterativeConfig()

    def should_retrieve_more(
        self,
        query: str,
        partial_response: str,
        current_chunk_count: int,
        max_chunks: int,
    ) -> RetrievalAdvice:
        if current_chunk_count >= max_chunks:
            return RetrievalAdvice(should_retrieve=False)

        response_lower = partial_response.lower()
        if not any(phrase in response_lower for phrase in self.config.uncertainty_phrases):
            return RetrievalAdvice(should_retrieve=False)

        remaining = max_chunks - current_chunk_count
        if self.llm is None:
            return RetrievalAdvice(
                should_retrieve=True,
                reason="response signals missing information",
                suggested_count=min(self.config.default_additional_chunks, remaining),
            )

        logger.info("Response shows uncertainty, checking if more retrieval would help")
        prompt = _ANALYSIS_PROMPT.format(
            query=query,
            response=partial_response[: self.config.response_preview_chars],
            current=current_chunk_count,
            maximum=max_chunks,
        )
        try:
            message = self.llm.invoke([HumanMessage(content=prompt)])
        except Exception:
            # The draft answer is still usable; skip the extra round.
            logger.exception("Iterative retrieval analysis failed")
            return RetrievalAdvice(should_retrieve=False)

        analysis = _parse_analysis(getattr(message, "content", message))
        if analysis is None:
            logger.info("Could not parse analysis response, defaulting to no retrieval")
            return RetrievalAdvice(should_retrieve=False)

        logger.info("Iterative retrieval analysis: %s", analysis)
        suggested = analysis.get("suggestedCount") or self.config.default_additional_chunks
        try:
            suggested_count = int(suggested)
        except (TypeError, ValueError):
            suggested_count = self.config.default_additional_chunks
        reason = analysis.get("reason")
        return RetrievalAdvice(
            should_retrieve=analysis.get("shouldRetrieve") is True,
            reason=str(reason) if reason is not None else None,
            suggested_count=min(suggested_count, remaining),
        )


def retrieve_additional_context(
    orchestrator: RetrievalOrchestrator,
    query: str,
    existing_results: Sequence[SearchResult],
    current_sources: SourceFilter | str | Sequence[str] | None,
    additional_count: int,
    search_fn: SearchFn,
) -> list[SearchResult]:
    """Run one more retrieval round and keep only unseen chunks.

    Deduplication is by exact content. An "all" source set is passed on as
    no override, so the orchestrator may pick a focus again.
    """

    logger.info("Retrieving %d additional chunks", additional_count)
    sources = parse_source_filter(current_sources)
    outcome = orchestrator.retrieve(
        query,
        None if isinstance(sources, AllSources) else sources,
        additional_count,
        search_fn,
    )
    existing_content = {result.content for result in existing_results}
    new_results = [result for result in outcome.results if result.content not in existing_content]
    logger.info("Retrieved %d new unique chunks", len(new_results))
    return new_results


def _parse_analysis(content: Any) -> dict[str, Any] | None:
    if isinstance(content, list):
        content = " ".join(
            str(item["text"]) if isinstance(item, dict) and "text" in item else str(item)
            for item in content
        )
    match = _JSON_OBJECT.search(str(content).strip())
    if not match:
        return None
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None
