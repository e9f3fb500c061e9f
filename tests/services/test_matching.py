"""Tests for the descriptor matching engine."""
import numpy as np
import pytest

from faceverify.services.matching import MatchingEngine, distance_to_confidence, euclidean_distance


def vector_at_distance(base: np.ndarray, distance: float) -> np.ndarray:
    offset = np.zeros_like(base)
    offset[-1] = distance
    return base + offset


@pytest.fixture
def base():
    return np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float32)


class TestConfidenceCurve:
    @pytest.mark.parametrize("distance,expected", [
        (0.0, 1.0),
        (0.1, 0.75 ** 1.5),
        (0.2, 0.5 ** 1.5),
        (0.4, 0.0),
        (0.9, 0.0),
    ])
    def test_curve_values(self, distance, expected):
        assert distance_to_confidence(distance, 0.4, 1.5) == pytest.approx(expected)

    def test_confidence_decreases_with_distance(self):
        engine = MatchingEngine()
        values = [engine.confidence(d) for d in np.linspace(0.0, 0.4, 9)]
        assert values == sorted(values, reverse=True)


class TestMatchingEngine:
    def test_identical_descriptor_is_perfect_match(self, base):
        result = MatchingEngine().match(base, [base.copy()])
        assert result.is_match
        assert result.distance == pytest.approx(0.0)
        assert result.confidence == pytest.approx(1.0)
        assert result.best_index == 0

    def test_close_descriptor_matches(self, base):
        result = MatchingEngine().match(vector_at_distance(base, 0.1), [base])
        assert result.is_match
        assert result.confidence == pytest.approx(0.6495, abs=1e-3)

    def test_distance_within_bound_but_confidence_too_low(self, base):
        # 0.15 -> confidence ~0.49, below 0.6
        result = MatchingEngine().match(vector_at_distance(base, 0.15), [base])
        assert result.distance <= 0.4
        assert result.confidence < 0.6
        assert not result.is_match

    def test_far_descriptor_has_zero_confidence(self, base):
        stranger = np.array([0.0, 1.0, 0.0, 0.0], dtype=np.float32)
        result = MatchingEngine().match(stranger, [base])
        assert not result.is_match
        assert result.confidence == 0.0

    def test_picks_closest_stored_descriptor(self, base):
        stored = [vector_at_distance(base, 0.3), vector_at_distance(base, 0.05), vector_at_distance(base, 0.2)]
        result = MatchingEngine().match(base, stored)
        assert result.best_index == 1
        assert result.distance == pytest.approx(0.05, abs=1e-6)

    def test_first_wins_on_equal_distance(self, base):
        result = MatchingEngine().match(base, [vector_at_distance(base, 0.1), vector_at_distance(base, 0.1)])
        assert result.best_index == 0

    def test_empty_stored_set_is_rejected(self, base):
        with pytest.raises(ValueError):
            MatchingEngine().match(base, [])

    def test_shape_mismatch_is_rejected(self, base):
        with pytest.raises(ValueError):
            euclidean_distance(base, np.zeros(3))

    def test_thresholds_are_configurable(self, base):
        lenient = MatchingEngine(max_distance=1.0, confidence_threshold=0.5)
        assert lenient.match(vector_at_distance(base, 0.2), [base]).is_match

    def test_invalid_thresholds(self):
        with pytest.raises(ValueError):
            MatchingEngine(max_distance=0)
        with pytest.raises(ValueError):
            MatchingEngine(confidence_threshold=1.5)


@pytest.mark.parametrize("cosine,matched", [(0.995, True), (0.99, False)])
def test_default_thresholds_on_unit_length_embeddings(cosine, matched):
    angle = np.arccos(cosine)
    enrolled = np.array([1.0, 0.0], dtype=np.float32)
    live = np.array([np.cos(angle), np.sin(angle)], dtype=np.float32)

    assert MatchingEngine().match(live, [enrolled]).is_match == matched
