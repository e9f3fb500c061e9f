"""Descriptor matching with a nonlinear confidence curve.

Distance is normalized by the largest distance that can still be a match,
clamped to [0, 1] and mapped to confidence as ``(1 - n) ** exponent``. With
an exponent above 1 the curve is convex: borderline distances lose
confidence faster than they would under a linear mapping.

Example:
    ```python
    engine = MatchingEngine()
    result = engine.match(current, [stored.vector for stored in descriptors])
    if result.is_match:
        ...
    ```
"""
from typing import Sequence

import numpy as np

from faceverify.core.config import settings
from faceverify.domain.value_objects.verification import MatchResult


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Get the Euclidean distance between two descriptors.

    Raises:
        ValueError: If the descriptors have different shapes
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Descriptor shapes differ: {a.shape} vs {b.shape}")
    return float(np.linalg.norm(a - b))


def distance_to_confidence(distance: float, max_distance: float, exponent: float) -> float:
    """Map a descriptor distance to a confidence in [0, 1]."""
    normalized = min(max(distance / max_distance, 0.0), 1.0)
    return float((1.0 - normalized) ** exponent)


class MatchingEngine:
    """Stateless comparison of one descriptor against stored descriptors.

    A result is a match only if the distance is within ``max_distance`` AND
    the confidence reaches ``confidence_threshold``. Both thresholds are kept
    because they are tuned independently.
    """

    def __init__(
        self,
        max_distance: float = settings.MATCH_MAX_DISTANCE,
        confidence_threshold: float = settings.MATCH_CONFIDENCE_THRESHOLD,
        exponent: float = settings.CONFIDENCE_EXPONENT,
    ) -> None:
        if max_distance <= 0:
            raise ValueError("max_distance must be positive")
        if not 0.0 <= confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be within [0, 1]")
        self.max_distance = max_distance
        self.confidence_threshold = confidence_threshold
        self.exponent = exponent

    def confidence(self, distance: float) -> float:
        return distance_to_confidence(distance, self.max_distance, self.exponent)

    def match(self, current: np.ndarray, stored: Sequence[np.ndarray]) -> MatchResult:
        """Find the stored descriptor closest to ``current``.

        Selection is by smallest raw distance; on equal distances the
        earliest stored descriptor wins.

        Args:
            current: Descriptor extracted from the live frame
            stored: Enrolled descriptors of the claimed identity

        Returns:
            MatchResult for the closest stored descriptor

        Raises:
            ValueError: If ``stored`` is empty or shapes differ
        """
        if len(stored) == 0:
            raise ValueError("No stored descriptors to match against")

        best_index = 0
        best_distance = euclidean_distance(current, stored[0])
        for index in range(1, len(stored)):
            distance = euclidean_distance(current, stored[index])
            if distance < best_distance:
                best_index, best_distance = index, distance

        confidence = self.confidence(best_distance)
        is_match = best_distance <= self.max_distance and confidence >= self.confidence_threshold

        return MatchResult(
            distance=best_distance,
            confidence=confidence,
            is_match=is_match,
            best_index=best_index,
        )
