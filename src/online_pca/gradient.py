# Author: Emrullah Erce Dutkan
"""
Gradients of the weighted Rayleigh-quotient PCA objective.

For one normalized sample x of length M and a basis W (M x d), the sample's
contribution to the objective

    f(W) = tr(W^T x x^T W D) / M

has the Euclidean gradient (2/M) x (x^T W) D. The diagonal weighting
D = diag(d, d-1, ..., 1) breaks the rotational symmetry of the top-d
subspace, so ascent converges to ordered eigenvectors instead of an arbitrary
rotation of them.

The overflow-safe variant divides column i by ||w_i||^2 + offset, the
Rayleigh-quotient denominator. On an orthonormal basis this is a factor of
1 / (1 + offset); it matters only at points off the manifold such as the
Nesterov look-ahead W - g v.
"""

from typing import Iterable, Optional
import numpy as np


def diagonal_weights(dim: int) -> np.ndarray:
    """
    Diagonal of the symmetry-breaking weight matrix D.

    Args:
        dim: Number of components.

    Returns:
        Array [dim, dim-1, ..., 1] as float64.
    """
    return np.arange(dim, 0, -1, dtype=np.float64)


def global_index(n_rows: int, epoch: int, row: int) -> int:
    """
    Absolute sample index t = N (s - 1) + n of the stream cursor.

    Args:
        n_rows: Rows per epoch (N).
        epoch: Epoch s, 1-indexed.
        row: Position n within the epoch, 1-indexed.
    """
    return n_rows * (epoch - 1) + row


def stochastic_gradient(
    W: np.ndarray,
    x: np.ndarray,
    weights: np.ndarray,
    n_features: int,
    stepsize: float,
    offset: Optional[float] = None
) -> np.ndarray:
    """
    Step-scaled gradient contribution of one sample.

    Args:
        W: Basis of shape (M, d).
        x: Normalized sample of shape (M,).
        weights: Diagonal of D, shape (d,).
        n_features: M, the scale of the objective.
        stepsize: Step scale folded into the result.
        offset: If given, use the overflow-safe variant with this offset on
            the per-column denominators.

    Returns:
        Gradient of shape (M, d).
    """
    # Count data is mostly zeros; only the non-zero entries contribute to x^T W
    nz = np.flatnonzero(x)
    projection = x[nz] @ W[nz]  # shape (d,)

    coef = stepsize * (2.0 / n_features) * weights
    if offset is not None:
        coef = coef / (np.einsum("ij,ij->j", W, W) + offset)

    return np.outer(x, projection * coef)


def full_gradient(
    W: np.ndarray,
    rows: Iterable[np.ndarray],
    weights: np.ndarray,
    n_features: int,
    stepsize: float,
    offset: Optional[float] = None
) -> np.ndarray:
    """
    Mean gradient over a complete pass.

    Args:
        W: Basis held fixed during the pass, shape (M, d).
        rows: Normalized rows of one full epoch.
        weights: Diagonal of D.
        n_features: M.
        stepsize: Step scale.
        offset: Denominator offset (see stochastic_gradient).

    Returns:
        Mean gradient of shape (M, d).
    """
    total = np.zeros_like(W)
    count = 0
    for x in rows:
        total += stochastic_gradient(W, x, weights, n_features, stepsize, offset)
        count += 1
    if count == 0:
        return total
    return total / count
