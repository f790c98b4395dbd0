"""Embedders for the reference search collaborator and source analysis."""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from dataclasses import dataclass
from hashlib import blake2b
from typing import Protocol

_WORD = re.compile(r"[a-z0-9]+")


class Embedder(Protocol):
    """Anything that maps text to a fixed-width vector."""

    def embed_query(self, text: str) -> list[float]:
        ...

    def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        ...


@dataclass(slots=True)
class HashingEmbedder:
    """Signed feature hashing over lower-cased words and adjacent word pairs.

    Stands in for a hosted embedding model in tests and the in-memory index.
    Vectors are L2-normalised so cosine ranking behaves like a real model's.
    """

    dimension: int = 256
    pair_weight: float = 0.5

    def __post_init__(self) -> None:
        if self.dimension < 1:
            raise ValueError("dimension must be positive")

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)

    def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        return [self._vector(text) for text in texts]

    def _vector(self, text: str) -> list[float]:
        words = _WORD.findall(text.lower())
        features = [(word, 1.0) for word in words]
        features += [(f"{a} {b}", self.pair_weight) for a, b in zip(words, words[1:])]

        vector = [0.0] * self.dimension
        for feature, weight in features:
            bucket, sign = _hash_feature(feature, self.dimension)
            vector[bucket] += sign * weight

        norm = math.hypot(*vector)
        return [value / norm for value in vector] if norm else vector


def _hash_feature(feature: str, dimension: int) -> tuple[int, float]:
    value = int.from_bytes(blake2b(feature.encode("utf-8"), digest_size=8).digest(), "big")
    return value % dimension, -1.0 if value >> 63 else 1.0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of two vectors; 0.0 when either is empty, zero or they differ in width."""
    if not a or len(a) != len(b):
        return 0.0
    norm = math.hypot(*a) * math.hypot(*b)
    if not norm:
        return 0.0
    return math.fsum(x * y for x, y in zip(a, b)) / norm
