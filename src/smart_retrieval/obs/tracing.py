"""Call-level telemetry aggregation for one user request."""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from smart_retrieval.types import CallMetrics

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)


@dataclass(slots=True)
class TrackedCall:
    call_type: str
    metrics: CallMetrics
    timestamp_utc: str


@dataclass(slots=True)
class RequestTracker:
    """Collects every embedding/search/LLM call made while serving a request.

    `track` has the `MetricsCallback` signature, so a bound tracker can be
    handed straight to a search collaborator as its telemetry hook. Tracking is
    observational only and never feeds back into routing.
    """

    request_type: str = "user_chat"
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    calls: list[TrackedCall] = field(default_factory=list)

    def track(self, metrics: CallMetrics) -> None:
        self.calls.append(
            TrackedCall(
                call_type=metrics.call_type,
                metrics=metrics,
                timestamp_utc=datetime.now(timezone.utc).isoformat(),
            )
        )

    @property
    def total_latency_ms(self) -> float:
        return sum(call.metrics.latency_ms for call in self.calls)

    @property
    def prompt_tokens(self) -> int:
        return sum(call.metrics.prompt_tokens for call in self.calls)

    @property
    def completion_tokens(self) -> int:
        return sum(call.metrics.completion_tokens for call in self.calls)

    def summary(self) -> dict[str, float | int]:
        """Aggregate call metrics for dashboard display."""
        total = len(self.calls)
        if total == 0:
            return {
                "total_calls": 0,
                "failed_calls": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "total_prompt_tokens": 0,
                "total_completion_tokens": 0,
            }

        latencies = sorted(call.metrics.latency_ms for call in self.calls)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        return {
            "total_calls": total,
            "failed_calls": sum(1 for call in self.calls if call.metrics.error),
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "total_prompt_tokens": self.prompt_tokens,
            "total_completion_tokens": self.completion_tokens,
        }


class Timer:
    """Simple context timer used around collaborator calls."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


def estimate_token_count(text: str) -> int:
    return len(_TOKEN_PATTERN.findall(text))
