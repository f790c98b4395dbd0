import pytest

from smart_retrieval.analysis.router import QueryRouter, route, should_use_simple_search
from smart_retrieval.config import RouterConfig
from smart_retrieval.types import RoutePath, route_flags


def test_definitional_first_message_takes_fast_path() -> None:
    result = route("What is the capital of France", True, [])

    assert result.path is RoutePath.FAST
    # short(3) + definitional(2) + self-contained(2) + first message(1)
    assert (result.fast_score, result.slow_score) == (8, 0)
    assert result.reason.startswith("Fast path: score 8 vs 0")
    assert "definitional=true" in result.reason
    assert result.skip_rephrasing
    assert result.skip_iterative_retrieval
    assert result.skip_source_analysis
    assert not result.use_two_stage_search
    assert should_use_simple_search(result)


def test_analytical_follow_up_takes_slow_path() -> None:
    result = route(
        "Why did I rate this book five stars and how does it compare "
        "to the other novels I read this year",
        False,
        [{"role": "user", "content": "hi"}],
    )

    assert result.path is RoutePath.SLOW
    # analytical(3) + clauses(2) + long(2) + needs context(2)
    assert (result.fast_score, result.slow_score) == (0, 9)
    assert "needs-context=true" in result.reason
    assert not result.skip_rephrasing
    assert result.use_two_stage_search
    assert not should_use_simple_search(result)


def test_tied_scores_resolve_to_slow_path() -> None:
    # fast: short(3) + self-contained(2); slow: analytical(3) + " or " clause(2)
    result = route("why do cats or dogs sleep", False, [])

    assert result.fast_score == result.slow_score == 5
    assert result.path is RoutePath.SLOW
    assert result.reason.startswith("Slow path: score 5 vs 5")


def test_anaphoric_follow_up_needs_context_only_after_first_message() -> None:
    follow_up = route("tell me more about it", False, [])
    opener = route("tell me more about it", True, [])

    assert follow_up.slow_score == 2
    assert opener.slow_score == 0


def test_markers_match_whole_words_only() -> None:
    # "capital" contains "it" and "the" contains "he"; neither is a pronoun.
    result = route("capital gains on the house", False, [])

    assert result.fast_score == 5
    assert result.slow_score == 0


def test_counting_and_list_signals() -> None:
    counting = route("how many invoices did I pay in 2023", True)
    listing = route("list my uploaded files", True)

    # short(3) + self-contained(2) + counting(2) + first(1) vs analytical "how"(3)
    assert (counting.fast_score, counting.slow_score) == (8, 3)
    # short(3) + self-contained(2) + list(1) + first(1)
    assert (listing.fast_score, listing.slow_score) == (7, 0)


def test_multi_part_question_scores_slow() -> None:
    result = route("Who wrote Dune? When was Dune published? Where was Herbert born?", True)

    # fast: self-contained(2) + first(1); slow: multi-part(3)
    assert (result.fast_score, result.slow_score) == (3, 3)
    assert result.path is RoutePath.SLOW
    assert "multi-part=true" in result.reason


def test_long_query_adds_slow_points() -> None:
    query = " ".join(["word"] * 21)

    result = route(query, True)

    assert result.slow_score == 2


def test_history_does_not_change_decision() -> None:
    query = "summarize my meeting notes from monday"

    assert route(query, False, []) == route(
        query, False, [{"role": "user", "content": "what about that?"}] * 5
    )


@pytest.mark.parametrize(
    ("query", "first"),
    [
        ("", True),
        ("   ", False),
        ("define entropy", True),
        ("and then what happened to them?", False),
        ("compare my 2022 and 2023 tax returns; which was larger?", False),
    ],
)
def test_flags_always_follow_path(query: str, first: bool) -> None:
    result = route(query, first, None)

    assert result.flags == route_flags(result.path)
    assert result.skip_rephrasing is (result.path is RoutePath.FAST)
    assert result.use_two_stage_search is (result.path is RoutePath.SLOW)
    assert result.path is (
        RoutePath.FAST if result.fast_score > result.slow_score else RoutePath.SLOW
    )


def test_custom_weights_are_respected() -> None:
    router = QueryRouter(RouterConfig(first_message_weight=10))

    assert router.route("why is the sky blue and green", True).path is RoutePath.FAST


def test_route_is_repeatable() -> None:
    assert route("explain my reading list", False) == route("explain my reading list", False)
