# recognition/services/matcher.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

logger = logging.getLogger("app")


@dataclass
class LabeledEmbeddings:
    label: str
    descriptors: List[np.ndarray] = field(default_factory=list)


@dataclass
class NearestMatch:
    label: Optional[str]
    distance: float


@dataclass
class MatchResult:
    label: Optional[str]
    distance: float
    confidence: float
    matched: bool

    @property
    def confidence_percent(self) -> int:
        # половинки округляем вверх: 62.5 -> 63
        return int(math.floor(self.confidence * 100 + 0.5))


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    a = np.asarray(a, dtype=np.float32).reshape(-1)
    b = np.asarray(b, dtype=np.float32).reshape(-1)
    if a.shape != b.shape:
        raise ValueError(f"Embedding size mismatch: {a.shape[0]} != {b.shape[0]}")
    return float(np.sqrt(np.sum((a - b) ** 2)))


def distance_to_confidence(distance: float) -> float:
    if not math.isfinite(distance):
        return 0.0
    return min(1.0, max(0.0, 1.0 - distance))


def find_nearest(query: np.ndarray, references: Sequence[LabeledEmbeddings]) -> NearestMatch:
    """Линейный проход; при равенстве побеждает встреченный первым."""
    best = NearestMatch(label=None, distance=math.inf)
    for entry in references:
        for desc in entry.descriptors:
            d = euclidean_distance(query, desc)
            if d < best.distance:
                best = NearestMatch(label=entry.label, distance=d)
    return best


def match(query: np.ndarray, references: Sequence[LabeledEmbeddings], threshold: float = 0.5) -> MatchResult:
    nearest = find_nearest(query, references)
    confidence = distance_to_confidence(nearest.distance)
    ok = nearest.label is not None and confidence >= threshold
    logger.info(f"match: label={nearest.label} dist={nearest.distance:.4f} conf={confidence:.4f} thr={threshold} -> {ok}")
    return MatchResult(
        label=nearest.label if ok else None,
        distance=nearest.distance,
        confidence=confidence,
        matched=ok,
    )
