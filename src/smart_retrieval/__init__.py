"""Adaptive retrieval decision engine."""

from .analysis.classifier import QueryClassifier, classify
from .analysis.router import QueryRouter, route
from .config import ClassifierConfig, OrchestratorConfig, RouterConfig
from .retrieval.orchestrator import RetrievalOrchestrator, retrieve

__all__ = [
    "ClassifierConfig",
    "OrchestratorConfig",
    "QueryClassifier",
    "QueryRouter",
    "RetrievalOrchestrator",
    "RouterConfig",
    "classify",
    "retrieve",
    "route",
]
