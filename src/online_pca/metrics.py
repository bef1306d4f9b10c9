# Author: Emrullah Erce Dutkan
"""
Evaluation metrics for online PCA.

This module provides metrics for judging an estimated basis:

1. Subspace distance: Measures angle between estimated and true subspaces
2. Reconstruction error: Error of projection-reconstruction, streamed through
   a source and normalizer
3. Batch reference: Exact basis for data small enough to fit in memory

Rows are samples and bases have shape (M, d) throughout. No centering is
done here; rows are centered (if at all) by the RowNormalizer.
"""

import numpy as np


def principal_angles(
    W1: np.ndarray,
    W2: np.ndarray
) -> np.ndarray:
    """
    Compute principal angles between two subspaces.

    The principal angles theta_1, ..., theta_k between subspaces spanned
    by columns of W1 and W2 are defined via:
        cos(theta_i) = sigma_i(W1^T W2)

    where sigma_i are the singular values of W1^T W2.

    Args:
        W1: Matrix with orthonormal columns, shape (M, k1).
        W2: Matrix with orthonormal columns, shape (M, k2).

    Returns:
        Array of principal angles in radians, length min(k1, k2).
    """
    if W1.ndim == 1:
        W1 = W1.reshape(-1, 1)
    if W2.ndim == 1:
        W2 = W2.reshape(-1, 1)

    M = W1.T @ W2

    # SVD to get singular values (cosines of principal angles)
    _, s, _ = np.linalg.svd(M, full_matrices=False)

    # Clip to [0, 1] for numerical stability
    s = np.clip(s, 0, 1)

    return np.arccos(s)


def subspace_distance(
    W_est: np.ndarray,
    W_ref: np.ndarray,
    method: str = "sin"
) -> float:
    """
    Compute distance between estimated and reference subspaces.

    Args:
        W_est: Estimated basis, shape (M, k).
        W_ref: Reference basis, shape (M, k).
        method: Distance measure:
            - "sin": Mean of sin(theta) for principal angles (default)
            - "sin_max": Maximum sin(theta)
            - "grassmann": Grassmann distance sqrt(sum(theta^2))
            - "projection": 1 - mean(cos(theta))

    Returns:
        Subspace distance (0 = identical, larger = more different).
    """
    if W_est.ndim == 1:
        W_est = W_est.reshape(-1, 1)
    if W_ref.ndim == 1:
        W_ref = W_ref.reshape(-1, 1)

    # Orthonormalize (in case they aren't exactly orthonormal)
    W_est, _ = np.linalg.qr(W_est)
    W_ref, _ = np.linalg.qr(W_ref)

    angles = principal_angles(W_est, W_ref)

    if method == "sin":
        return float(np.mean(np.sin(angles)))
    elif method == "sin_max":
        return float(np.max(np.sin(angles)))
    elif method == "grassmann":
        return float(np.sqrt(np.sum(angles ** 2)))
    elif method == "projection":
        return float(1 - np.mean(np.cos(angles)))
    else:
        raise ValueError(f"Unknown method: {method}")


def cosine_similarity(u: np.ndarray, v: np.ndarray) -> float:
    """Absolute cosine of the angle between two vectors."""
    denom = np.linalg.norm(u) * np.linalg.norm(v)
    if denom == 0:
        return 0.0
    return float(abs(u @ v) / denom)


def stream_reconstruction_error(
    source,
    normalizer,
    W: np.ndarray,
    relative: bool = True
) -> float:
    """
    Reconstruction error over one full pass of a stream.

    The basis is orthonormalized first, so CCIPCA estimates (which are not
    orthonormal) are scored on the subspace they span.

    Args:
        source: StreamSource with the raw rows.
        normalizer: RowNormalizer applied to each row.
        W: Basis of shape (M, k).
        relative: If True, divide by the total squared norm.

    Returns:
        Reconstruction error.
    """
    Q, _ = np.linalg.qr(W)
    error = 0.0
    total = 0.0
    for n, raw in enumerate(source.rows()):
        x = normalizer(raw, n)
        p = x @ Q
        xx = float(x @ x)
        # ||x - Q Q^T x||^2 = ||x||^2 - ||Q^T x||^2 for orthonormal Q
        error += max(xx - float(p @ p), 0.0)
        total += xx
    if not relative:
        return error
    if total < 1e-300:
        return 0.0
    return error / total


def batch_pca_reference(
    X: np.ndarray,
    k: int,
    center: bool = False
) -> np.ndarray:
    """
    Compute a batch PCA reference basis using SVD.

    This provides a ground truth for evaluating online methods on data small
    enough to fit in memory.

    Args:
        X: Data matrix of shape (n_samples, M).
        k: Number of components.
        center: If True, center the columns first.

    Returns:
        Basis of shape (M, k).
    """
    X = np.asarray(X, dtype=np.float64)

    if center:
        X = X - np.mean(X, axis=0)

    # SVD: X = U S V^T, principal directions are columns of V
    _, _, Vt = np.linalg.svd(X, full_matrices=False)
    return Vt[:k].T.copy()
