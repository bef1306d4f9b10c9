# Author: Emrullah Erce Dutkan
import numpy as np
import pytest

from online_pca.gradient import diagonal_weights, full_gradient, global_index, stochastic_gradient
from online_pca.manifold import orthonormality_error, retract, sym, tangent_projection
from online_pca.metrics import subspace_distance


@pytest.fixture
def rng():
    return np.random.default_rng(0)


def test_diagonal_weights_break_symmetry():
    np.testing.assert_array_equal(diagonal_weights(3), [3.0, 2.0, 1.0])


def test_global_index():
    assert global_index(50, 1, 1) == 1
    assert global_index(50, 2, 5) == 55


class TestStochasticGradient:
    def test_matches_dense_formula(self, rng):
        W = rng.standard_normal((6, 2))
        x = np.array([0.0, 1.5, 0.0, -2.0, 0.5, 0.0])
        D = diagonal_weights(2)

        G = stochastic_gradient(W, x, D, 6, 0.3)

        expected = 0.3 * (2.0 / 6) * np.outer(x, x @ W) @ np.diag(D)
        np.testing.assert_allclose(G, expected)

    def test_offset_divides_by_column_norms(self, rng):
        W = rng.standard_normal((5, 3))
        x = rng.standard_normal(5)
        D = diagonal_weights(3)

        plain = stochastic_gradient(W, x, D, 5, 1.0)
        safe = stochastic_gradient(W, x, D, 5, 1.0, offset=1e-6)

        np.testing.assert_allclose(safe, plain / (np.sum(W ** 2, axis=0) + 1e-6))

    def test_zero_row_gives_zero_gradient(self, rng):
        W = rng.standard_normal((4, 2))
        G = stochastic_gradient(W, np.zeros(4), diagonal_weights(2), 4, 1.0)
        np.testing.assert_array_equal(G, np.zeros((4, 2)))

    def test_full_gradient_is_mean(self, rng):
        W = rng.standard_normal((4, 2))
        rows = [rng.standard_normal(4) for _ in range(5)]
        D = diagonal_weights(2)

        u = full_gradient(W, iter(rows), D, 4, 0.1)

        expected = np.mean([stochastic_gradient(W, x, D, 4, 0.1) for x in rows], axis=0)
        np.testing.assert_allclose(u, expected)


class TestManifold:
    def test_projection_is_tangent(self, rng):
        W, _ = np.linalg.qr(rng.standard_normal((8, 3)))
        G = rng.standard_normal((8, 3))

        P = tangent_projection(G, W)

        # Tangent vectors at W satisfy W^T P + P^T W = 0
        np.testing.assert_allclose(sym(W.T @ P), np.zeros((3, 3)), atol=1e-12)

    def test_projection_is_idempotent(self, rng):
        W, _ = np.linalg.qr(rng.standard_normal((8, 3)))
        P = tangent_projection(rng.standard_normal((8, 3)), W)
        np.testing.assert_allclose(tangent_projection(P, W), P, atol=1e-12)

    def test_retract_is_orthonormal(self, rng):
        Q = retract(rng.standard_normal((10, 4)))
        assert orthonormality_error(Q) < 1e-12

    def test_retract_keeps_column_space(self, rng):
        A = rng.standard_normal((10, 3))
        assert subspace_distance(retract(A), A) < 1e-7

    def test_retract_fixes_orthonormal_input(self, rng):
        Q = retract(rng.standard_normal((7, 3)))
        np.testing.assert_allclose(retract(Q), Q, atol=1e-12)

    def test_retract_rank_deficient(self):
        W = np.zeros((5, 2))
        W[0, 0] = 1.0
        assert orthonormality_error(retract(W)) < 1e-12
