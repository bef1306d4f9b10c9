# Author: Emrullah Erce Dutkan
"""
Chunked randomized SVD with lazy row centering.

Halko, Martinsson and Tropp (2011). The data matrix X (N x M) is read in
blocks of consecutive rows and is never held in memory as a whole. The
centered matrix A = X - mu 1^T (mu = per-row means) is never formed either;
every product with A is corrected afterwards:

    A Omega   = X Omega   - mu (1^T Omega)
    A^T L     = X^T L     - 1 (mu^T L)
    Q^T A     = Q^T X     - (Q^T mu) 1^T

With l = d + oversample and a Gaussian test matrix Omega (M x l):

1. Y = A Omega
2. niter normalized power iterations Y <- A A^T L, where L is the LU
   factor of the previous Y (all but the last) or its QR factor (last)
3. B = Q^T A (l x M), dense SVD B = W_B S V^T
4. loadings U = Q W_B, eigenvectors V, eigenvalues S^2 / M

Each pass over the data is a fold over the chunk stream. With perm=True every
pass reads the rows in the same seeded random order (the source needs random
access); loadings are mapped back to the original row order.
"""

from functools import reduce
from typing import Iterator, Optional, Tuple
from dataclasses import replace
import logging

import numpy as np
import scipy.linalg
import scipy.sparse as sp

from .config import PCAConfig, get_default_config, validate_config
from .exceptions import ConfigurationError, PreconditionError
from .io import load_matrix
from .normalize import build_normalizer, scale_matrix
from .output import PCAResult
from .source import StreamSource, open_source


logger = logging.getLogger(__name__)

RSVD_OPTIONS = ("oversample", "niter", "chunksize")


def _row_sums(X) -> np.ndarray:
    return np.asarray(X.sum(axis=1), dtype=np.float64).ravel()


def _row_sq_norms(X) -> np.ndarray:
    if sp.issparse(X):
        return _row_sums(X.multiply(X))
    return np.einsum("ij,ij->i", X, X)


class RandomizedSVD:
    """
    Randomized SVD over a chunked stream of rows.

    Attributes:
        config: Validated PCAConfig with algorithm "rsvd".
        result_: PCAResult of the last fit.
    """

    algorithm = "rsvd"

    def __init__(self, config: Optional[PCAConfig] = None, **kwargs):
        """
        Initialize the engine.

        Args:
            config: Run configuration. Defaults to get_default_config("rsvd").
            **kwargs: Overrides for PCAConfig fields; oversample, niter and
                chunksize override the nested RandomizedSVDConfig.
        """
        if config is None:
            config = get_default_config(self.algorithm)
        rsvd_overrides = {key: kwargs.pop(key) for key in RSVD_OPTIONS if key in kwargs}
        config = replace(
            config,
            algorithm=self.algorithm,
            rsvd=replace(config.rsvd, **rsvd_overrides),
            **kwargs
        )
        self.config = validate_config(config)
        self.rng = np.random.default_rng(self.config.seed)
        self.result_: Optional[PCAResult] = None

    def _chunks(self, source: StreamSource, normalizer, order=None) -> Iterator[Tuple[int, object]]:
        """Yield (start, scaled block) pairs for one pass, in permuted row order if given."""
        chunksize = self.config.rsvd.chunksize
        if order is None:
            blocks = source.chunks(chunksize)
        else:
            blocks = (
                (start, np.vstack([source.row(int(n)) for n in order[start:start + chunksize]]))
                for start in range(0, order.shape[0], chunksize)
            )
        for start, block in blocks:
            yield start, scale_matrix(block, normalizer.scale, normalizer.pseudocount)

    def _test_matrix(self, omega, source, normalizer, mu, order=None) -> np.ndarray:
        """Fill the first columns of the Gaussian test matrix from an initial basis, if given."""
        config = self.config
        dim = config.dim
        n_features = omega.shape[0]

        if config.init_w is not None:
            W = config.init_w
            W = load_matrix(W) if isinstance(W, str) else np.array(W, dtype=np.float64, ndmin=2)
            if W.shape[0] != n_features or W.shape[1] < dim:
                raise ConfigurationError(
                    f"init_w has shape {W.shape}, expected ({n_features}, {dim})"
                )
            omega[:, :dim] = W[:, :dim]

        elif config.init_v is not None:
            V = config.init_v
            V = load_matrix(V) if isinstance(V, str) else np.array(V, dtype=np.float64, ndmin=2)
            if V.shape[0] != mu.shape[0] or V.shape[1] < dim:
                raise ConfigurationError(
                    f"init_v has shape {V.shape}, expected ({mu.shape[0]}, {dim})"
                )
            V = V[:, :dim] if order is None else V[order, :dim]
            # A^T V, one pass
            omega[:, :dim] = reduce(
                lambda acc, chunk: acc + self._at_times(chunk, V, mu),
                self._chunks(source, normalizer, order),
                np.zeros((n_features, dim))
            )

        return omega

    @staticmethod
    def _at_times(chunk, L: np.ndarray, mu: np.ndarray) -> np.ndarray:
        """Contribution of one chunk to A^T L."""
        start, X = chunk
        stop = start + X.shape[0]
        Lc = L[start:stop]
        return np.asarray(X.T @ Lc) - mu[start:stop] @ Lc

    @staticmethod
    def _a_times(chunk, R: np.ndarray, mu: np.ndarray) -> np.ndarray:
        """Rows of A R for one chunk."""
        start, X = chunk
        stop = start + X.shape[0]
        return np.asarray(X @ R) - np.outer(mu[start:stop], R.sum(axis=0))

    def fit(self, source) -> PCAResult:
        """
        Compute the top-d singular triplets of the centered data.

        Args:
            source: StreamSource, array, sparse matrix or .npy/.npz path.

        Returns:
            PCAResult with eigenvectors (M x d), loadings (N x d), scores
            V diag(s) (M x d), eigenvalues s^2 / M, explained variance ratio
            and total variance.

        Raises:
            PreconditionError: Unless 0 < d <= d + oversample <= min(N, M).
        """
        config = self.config
        source = open_source(source)
        n_rows, n_columns = source.dimensions()
        dim = config.dim

        if config.perm and not source.supports_random_access:
            raise ConfigurationError(
                f"perm=True needs a source with random access, got {type(source).__name__}"
            )
        width = dim + config.rsvd.oversample
        niter = config.rsvd.niter

        if not 0 < dim <= width <= min(n_rows, n_columns):
            raise PreconditionError(
                f"Need 0 < dim <= dim + oversample <= min(N, M), got dim={dim}, "
                f"dim + oversample={width}, N={n_rows}, M={n_columns}"
            )

        normalizer = build_normalizer(config.normalization, n_columns)
        if normalizer.rowmean is not None and normalizer.rowmean.shape[0] < n_rows:
            raise ConfigurationError(
                f"rowmean has {normalizer.rowmean.shape[0]} entries for {n_rows} rows"
            )
        mu = normalizer.rowmean_vector(n_rows)

        omega = self.rng.standard_normal((n_columns, width))
        order = None
        if config.perm:
            # One shuffle shared by every pass, so the rows of Q stay aligned
            order = self.rng.permutation(n_rows)
            mu = mu[order]
        omega = self._test_matrix(omega, source, normalizer, mu, order)

        logger.info("Random projection: Y = A Omega (%d x %d)", n_rows, width)
        blocks = []
        total = 0.0
        for chunk in self._chunks(source, normalizer, order):
            start, X = chunk
            m = mu[start:start + X.shape[0]]
            blocks.append(self._a_times(chunk, omega, mu))
            # ||x - m 1||^2 = ||x||^2 - 2 m sum(x) + M m^2
            total += float(np.sum(_row_sq_norms(X) - 2.0 * m * _row_sums(X) + n_columns * m * m))
        Y = np.vstack(blocks)
        total_variance = total / n_columns

        if niter == 0:
            Q, _ = scipy.linalg.qr(Y, mode="economic")
        else:
            Q, _ = scipy.linalg.lu(Y, permute_l=True)

        for it in range(1, niter + 1):
            logger.info("Power iteration %d/%d", it, niter)
            AtL = reduce(
                lambda acc, chunk: acc + self._at_times(chunk, Q, mu),
                self._chunks(source, normalizer, order),
                np.zeros((n_columns, width))
            )
            Y = np.vstack([self._a_times(chunk, AtL, mu) for chunk in self._chunks(source, normalizer, order)])
            if it < niter:
                Q, _ = scipy.linalg.lu(Y, permute_l=True)
            else:
                Q, _ = scipy.linalg.qr(Y, mode="economic")

        logger.info("Small matrix: B = Q^T A (%d x %d)", width, n_columns)
        BT = reduce(
            lambda acc, chunk: acc + self._at_times(chunk, Q, mu),
            self._chunks(source, normalizer, order),
            np.zeros((n_columns, width))
        )
        B = BT.T

        logger.info("Dense SVD of B")
        Wb, s, Vt = scipy.linalg.svd(B, full_matrices=False)
        s = s[:dim]
        U = Q @ Wb[:, :dim]
        if order is not None:
            loadings = np.empty_like(U)
            loadings[order] = U
            U = loadings
        V = Vt[:dim].T.copy()

        eigenvalues = s ** 2 / n_columns
        explained = None
        if total_variance > 0:
            explained = float(eigenvalues.sum() / total_variance)

        result = PCAResult(
            eigenvectors=V,
            eigenvalues=eigenvalues,
            loadings=U,
            scores=V * s,
            explained_variance_ratio=explained,
            total_variance=total_variance,
            singular_values=s,
            algorithm=self.algorithm,
            n_samples_seen=n_rows
        )
        self.result_ = result
        return result


def randomized_svd_pca(
    X,
    k: int,
    oversample: int = 5,
    niter: int = 3,
    chunksize: int = 5000,
    config: Optional[PCAConfig] = None
) -> Tuple[np.ndarray, PCAResult]:
    """
    Convenience function to run the chunked randomized SVD.

    Args:
        X: Data matrix of shape (N, M), dense or sparse, or a stream source.
        k: Number of components.
        oversample: Extra columns of the test matrix.
        niter: Number of power iterations.
        chunksize: Rows per chunk.
        config: Base configuration; the other arguments override it.

    Returns:
        Tuple of (components, result) where components has shape (k, M).
    """
    model = RandomizedSVD(
        config, dim=k, oversample=oversample, niter=niter, chunksize=chunksize
    )
    result = model.fit(X)
    return result.components_, result
