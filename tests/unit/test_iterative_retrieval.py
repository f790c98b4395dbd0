from types import SimpleNamespace

from langchain_core.messages import HumanMessage

from smart_retrieval.retrieval.iterative import (
    IterativeRetrievalAdvisor,
    retrieve_additional_context,
)
from smart_retrieval.retrieval.orchestrator import RetrievalOrchestrator
from smart_retrieval.types import ExplicitSources, SearchResult, SourceFilter


class MockLLM:
    def __init__(self, content: object = None, error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.messages: list[object] = []

    def invoke(self, messages: list[object]) -> SimpleNamespace:
        self.messages.extend(messages)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=self.content)


def test_no_more_retrieval_at_chunk_limit() -> None:
    advisor = IterativeRetrievalAdvisor()

    advice = advisor.should_retrieve_more("q", "I don't know", 10, 10)

    assert not advice.should_retrieve


def test_confident_answer_skips_retrieval() -> None:
    llm = MockLLM(content='{"shouldRetrieve": true}')
    advisor = IterativeRetrievalAdvisor(llm=llm)

    advice = advisor.should_retrieve_more("q", "Your invoice total was $42.", 2, 10)

    assert not advice.should_retrieve
    assert llm.messages == []


def test_uncertain_answer_without_model_uses_heuristic() -> None:
    advisor = IterativeRetrievalAdvisor()

    advice = advisor.should_retrieve_more("q", "I'm not sure which letter you mean.", 8, 10)

    assert advice.should_retrieve
    assert advice.suggested_count == 2


def test_model_verdict_is_parsed_from_fenced_json() -> None:
    llm = MockLLM(
        content='```json\n{"shouldRetrieve": true, "reason": "needs dates", "suggestedCount": 8}\n```'
    )
    advisor = IterativeRetrievalAdvisor(llm=llm)

    advice = advisor.should_retrieve_more("When was it signed?", "I cannot find the date.", 4, 10)

    assert advice.should_retrieve
    assert advice.reason == "needs dates"
    assert advice.suggested_count == 6
    assert isinstance(llm.messages[0], HumanMessage)
    assert "When was it signed?" in llm.messages[0].content


def test_unparsable_or_failing_model_declines() -> None:
    garbled = IterativeRetrievalAdvisor(llm=MockLLM(content="no json here"))
    failing = IterativeRetrievalAdvisor(llm=MockLLM(error=RuntimeError("rate limited")))

    assert not garbled.should_retrieve_more("q", "insufficient detail", 0, 10).should_retrieve
    assert not failing.should_retrieve_more("q", "insufficient detail", 0, 10).should_retrieve


def test_additional_context_drops_known_chunks() -> None:
    calls: list[tuple[int, SourceFilter]] = []

    def search(query: str, limit: int, sources: SourceFilter) -> list[SearchResult]:
        calls.append((limit, sources))
        return [
            SearchResult(content="known", score=0.9, metadata={"source": "paperless"}),
            SearchResult(content="fresh", score=0.8, metadata={"source": "paperless"}),
        ]

    existing = [SearchResult(content="known", score=0.9, metadata={"source": "paperless"})]

    new_results = retrieve_additional_context(
        RetrievalOrchestrator(), "water bill", existing, ["paperless"], 3, search
    )

    assert [r.content for r in new_results] == ["fresh"]
    assert calls == [(3, ExplicitSources(("paperless",)))]
