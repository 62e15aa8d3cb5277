"""Tests for cosine similarity helpers."""

import numpy as np
import pytest

from komichi.core.errors import DimensionMismatch
from komichi.semantic.vectors import as_vector, cosine_distance, cosine_similarity


class TestCosine:

    def test_identical_and_orthogonal(self):
        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)

    def test_opposite(self):
        assert cosine_similarity([1, 2], [-1, -2]) == pytest.approx(-1.0)

    def test_scale_invariant(self):
        assert cosine_similarity([1, 1], [5, 5]) == pytest.approx(1.0)

    def test_zero_vector(self):
        assert cosine_similarity([0, 0], [1, 0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatch):
            cosine_similarity([1, 0, 0], [1, 0])

    def test_distance(self):
        assert cosine_distance([1, 0], [0, 1]) == pytest.approx(1.0)
        assert cosine_distance([3, 4], [3, 4]) == pytest.approx(0.0)


class TestAsVector:

    def test_coerces_to_float32(self):
        vec = as_vector([1, 2, 3])
        assert vec.dtype == np.float32
        assert vec.shape == (3,)

    def test_rejects_matrices(self):
        with pytest.raises(ValueError):
            as_vector([[1, 2], [3, 4]])
