"""Fast/slow path routing for incoming chat queries."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from smart_retrieval.config import RouterConfig
from smart_retrieval.types import QueryRoute, RoutePath

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Signals:
    is_short: bool
    is_definitional: bool
    is_self_contained: bool
    is_counting: bool
    is_list: bool
    is_first_message: bool
    is_analytical: bool
    is_multi_part: bool
    has_multiple_clauses: bool
    is_long: bool
    needs_context: bool


class QueryRouter:
    """Scores a query for the cheap (fast) or expensive (slow) pipeline.

    Two independent point tallies are accumulated, one per path. The fast path
    wins only on a strictly higher score; ties go to the slow path since it
    is the one that cannot miss context.

    The conversation history is accepted so callers can pass it uniformly,
    but only `is_first_message` feeds the "needs prior context" signal.
    """

    def __init__(self, config: RouterConfig | None = None) -> None:
        self.config = config or RouterConfig()
        self._definitional = re.compile(self.config.definitional_pattern, re.IGNORECASE)
        self._context_marker = re.compile(
            rf"\b{self.config.context_marker_pattern}\b", re.IGNORECASE
        )
        self._counting = re.compile(self.config.counting_pattern, re.IGNORECASE)
        self._list = re.compile(self.config.list_pattern, re.IGNORECASE)
        self._analytical = re.compile(self.config.analytical_pattern, re.IGNORECASE)

    def route(
        self,
        query: str,
        is_first_message: bool,
        history: Sequence[Any] | None = None,
    ) -> QueryRoute:
        del history  # only the first-message bit is used today.
        signals = self._signals(query or "", is_first_message)
        fast_score, slow_score = self._scores(signals)

        if fast_score > slow_score:
            path = RoutePath.FAST
            reason = (
                f"Fast path: score {fast_score} vs {slow_score} "
                f"(short={_flag(signals.is_short)}, "
                f"self-contained={_flag(signals.is_self_contained)}, "
                f"definitional={_flag(signals.is_definitional)})"
            )
        else:
            path = RoutePath.SLOW
            reason = (
                f"Slow path: score {fast_score} vs {slow_score} "
                f"(complex={_flag(signals.is_analytical)}, "
                f"multi-part={_flag(signals.is_multi_part)}, "
                f"needs-context={_flag(signals.needs_context)})"
            )

        logger.info("Query routed: %s", reason)
        return QueryRoute(path=path, reason=reason, fast_score=fast_score, slow_score=slow_score)

    def _signals(self, query: str, is_first_message: bool) -> _Signals:
        cfg = self.config
        word_count = len(query.split())
        is_self_contained = self._context_marker.search(query) is None
        return _Signals(
            is_short=word_count <= cfg.short_max_words,
            is_definitional=self._definitional.search(query) is not None,
            is_self_contained=is_self_contained,
            is_counting=self._counting.search(query) is not None,
            is_list=self._list.search(query) is not None,
            is_first_message=is_first_message,
            is_analytical=self._analytical.search(query) is not None,
            is_multi_part="?" in query and len(query.split("?")) > 2,
            has_multiple_clauses=any(sep in query for sep in cfg.clause_separators),
            is_long=word_count > cfg.long_over_words,
            needs_context=not is_first_message and not is_self_contained,
        )

    def _scores(self, signals: _Signals) -> tuple[int, int]:
        cfg = self.config
        fast_score = sum(
            weight
            for active, weight in (
                (signals.is_short, cfg.short_weight),
                (signals.is_definitional, cfg.definitional_weight),
                (signals.is_self_contained, cfg.self_contained_weight),
                (signals.is_counting, cfg.counting_weight),
                (signals.is_list, cfg.list_weight),
                (signals.is_first_message, cfg.first_message_weight),
            )
            if active
        )
        slow_score = sum(
            weight
            for active, weight in (
                (signals.is_analytical, cfg.analytical_weight),
                (signals.is_multi_part, cfg.multi_part_weight),
                (signals.has_multiple_clauses, cfg.clauses_weight),
                (signals.is_long, cfg.long_weight),
                (signals.needs_context, cfg.needs_context_weight),
            )
            if active
        )
        return fast_score, slow_score


def should_use_simple_search(route: QueryRoute) -> bool:
    """True when the direct single-call search is enough for this route."""
    return route.path is RoutePath.FAST and not route.use_two_stage_search


def _flag(value: bool) -> str:
    return "true" if value else "false"


_default_router = QueryRouter()


def route(
    query: str,
    is_first_message: bool,
    history: Sequence[Any] | None = None,
) -> QueryRoute:
    """Route with the default signal table."""
    return _default_router.route(query, is_first_message, history)
