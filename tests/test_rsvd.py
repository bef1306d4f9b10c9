# Author: Emrullah Erce Dutkan
import numpy as np
import pytest
import scipy.sparse as sp

from online_pca.config import NormalizationConfig
from online_pca.datasets import make_count_matrix
from online_pca.exceptions import ConfigurationError, PreconditionError
from online_pca.metrics import batch_pca_reference, subspace_distance
from online_pca.rsvd import RandomizedSVD, randomized_svd_pca
from online_pca.source import SparseNpzSource


@pytest.fixture
def shifted_low_rank():
    """60 x 40 rank-3 matrix plus small noise, with every row shifted by its own offset."""
    rng = np.random.default_rng(0)
    U, _ = np.linalg.qr(rng.standard_normal((60, 3)))
    V, _ = np.linalg.qr(rng.standard_normal((40, 3)))
    A = U @ np.diag([10.0, 5.0, 2.0]) @ V.T + 1e-4 * rng.standard_normal((60, 40))
    mu = rng.uniform(-3.0, 3.0, size=60)
    return A + mu[:, None], mu, A


def make_engine(mu, **kwargs):
    options = dict(dim=3, oversample=5, niter=2, chunksize=16, seed=0)
    options.update(kwargs)
    return RandomizedSVD(
        normalization=NormalizationConfig(scale="raw", rowmean=mu), **options
    )


def test_matches_exact_svd_of_centered_matrix(shifted_low_rank):
    X, mu, A = shifted_low_rank
    s_ref = np.linalg.svd(A, compute_uv=False)

    result = make_engine(mu).fit(X)

    np.testing.assert_allclose(result.singular_values, s_ref[:3], rtol=1e-3)
    np.testing.assert_allclose(result.eigenvalues, result.singular_values ** 2 / 40)
    assert subspace_distance(result.eigenvectors, batch_pca_reference(A, 3)) < 1e-3


def test_output_shapes_and_variance(shifted_low_rank):
    X, mu, A = shifted_low_rank
    result = make_engine(mu).fit(X)

    assert result.eigenvectors.shape == (40, 3)
    assert result.loadings.shape == (60, 3)
    assert result.scores.shape == (40, 3)
    np.testing.assert_allclose(result.scores, result.eigenvectors * result.singular_values)
    np.testing.assert_allclose(np.linalg.norm(result.loadings, axis=0), 1.0)
    np.testing.assert_allclose(result.total_variance, np.sum(A ** 2) / 40)
    assert result.explained_variance_ratio == pytest.approx(1.0, abs=1e-6)
    assert result.n_samples_seen == 60


def test_loadings_span_left_singular_vectors(shifted_low_rank):
    X, mu, A = shifted_low_rank
    U_ref, _, _ = np.linalg.svd(A, full_matrices=False)
    result = make_engine(mu).fit(X)
    assert subspace_distance(result.loadings, U_ref[:, :3]) < 1e-3


def test_without_power_iterations(shifted_low_rank):
    X, mu, A = shifted_low_rank
    s_ref = np.linalg.svd(A, compute_uv=False)
    result = make_engine(mu, niter=0).fit(X)
    np.testing.assert_allclose(result.singular_values, s_ref[:3], rtol=1e-2)


def test_chunk_size_does_not_change_result(shifted_low_rank):
    X, mu, _ = shifted_low_rank
    small = make_engine(mu, chunksize=7).fit(X)
    whole = make_engine(mu, chunksize=1000).fit(X)
    np.testing.assert_allclose(small.singular_values, whole.singular_values, rtol=1e-8)


def test_sparse_input_matches_dense():
    X = make_count_matrix(50, 30, rank=3, seed=0)
    options = dict(dim=3, oversample=5, niter=2, chunksize=8, seed=1)

    dense = RandomizedSVD(**options).fit(X)
    sparse = RandomizedSVD(**options).fit(sp.csr_matrix(X))

    # Default scale is sqrt, which keeps the sparse chunks sparse
    assert dense.algorithm == "rsvd"
    np.testing.assert_allclose(sparse.singular_values, dense.singular_values, rtol=1e-8)
    np.testing.assert_allclose(np.abs(sparse.loadings), np.abs(dense.loadings), atol=1e-8)


def test_log_scale_matches_prescaled_input():
    X = make_count_matrix(40, 20, rank=2, seed=0)
    options = dict(dim=2, niter=3, seed=0)

    scaled = RandomizedSVD(normalization=NormalizationConfig(scale="log"), **options).fit(X)
    prescaled = RandomizedSVD(
        normalization=NormalizationConfig(scale="raw"), **options
    ).fit(np.log10(X + 1.0))

    np.testing.assert_allclose(scaled.singular_values, prescaled.singular_values, rtol=1e-8)


@pytest.mark.parametrize("dim, oversample", [(3, 50), (61, 0)])
def test_rank_precondition(shifted_low_rank, dim, oversample):
    X, mu, _ = shifted_low_rank
    with pytest.raises(PreconditionError):
        make_engine(mu, dim=dim, oversample=oversample).fit(X)


def test_unsupported_normalization():
    with pytest.raises(ConfigurationError, match="colsum"):
        RandomizedSVD(normalization=NormalizationConfig(colsum=[1.0, 2.0]))
    with pytest.raises(ConfigurationError, match="ftt"):
        RandomizedSVD(normalization=NormalizationConfig(scale="ftt"))


def test_invalid_options():
    with pytest.raises(ConfigurationError, match="oversample"):
        RandomizedSVD(oversample=-1)
    with pytest.raises(ConfigurationError, match="chunksize"):
        RandomizedSVD(chunksize=0)


def test_initial_basis_seeds_test_matrix(shifted_low_rank):
    X, mu, A = shifted_low_rank
    _, s_ref, Vt_ref = np.linalg.svd(A, full_matrices=False)
    result = make_engine(mu, niter=0, oversample=0, init_w=Vt_ref[:3].T).fit(X)
    # With the exact right singular vectors as the sketch no oversampling is needed
    np.testing.assert_allclose(result.singular_values, s_ref[:3], rtol=1e-6)


def test_initial_loadings(shifted_low_rank):
    X, mu, A = shifted_low_rank
    U_ref, s_ref, _ = np.linalg.svd(A, full_matrices=False)
    result = make_engine(mu, niter=0, oversample=0, init_v=U_ref[:, :3]).fit(X)
    np.testing.assert_allclose(result.singular_values, s_ref[:3], rtol=1e-6)


def test_permuted_row_order_gives_same_decomposition(shifted_low_rank):
    X, mu, _ = shifted_low_rank
    ordered = make_engine(mu).fit(X)
    shuffled = make_engine(mu, perm=True).fit(X)

    np.testing.assert_allclose(shuffled.singular_values, ordered.singular_values, rtol=1e-8)
    # Loadings come back in the original row order
    np.testing.assert_allclose(np.abs(shuffled.loadings), np.abs(ordered.loadings), atol=1e-8)
    np.testing.assert_allclose(
        np.abs(shuffled.eigenvectors), np.abs(ordered.eigenvectors), atol=1e-8
    )


def test_permuted_initial_loadings(shifted_low_rank):
    X, mu, A = shifted_low_rank
    U_ref, s_ref, _ = np.linalg.svd(A, full_matrices=False)
    result = make_engine(mu, niter=0, oversample=0, init_v=U_ref[:, :3], perm=True).fit(X)
    np.testing.assert_allclose(result.singular_values, s_ref[:3], rtol=1e-6)
    assert subspace_distance(result.loadings, U_ref[:, :3]) < 1e-6


def test_perm_needs_random_access(shifted_low_rank, tmp_path):
    X, mu, _ = shifted_low_rank
    path = str(tmp_path / "X.npz")
    sp.save_npz(path, sp.csr_matrix(X))
    with pytest.raises(ConfigurationError, match="random access"):
        make_engine(mu, perm=True).fit(SparseNpzSource(path))


def test_convenience_function(shifted_low_rank):
    X, _, _ = shifted_low_rank
    components, result = randomized_svd_pca(X, 2, niter=1, chunksize=10)
    assert components.shape == (2, 40)
    assert result.eigenvectors.shape == (40, 2)
