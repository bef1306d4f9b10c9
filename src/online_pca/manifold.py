# Author: Emrullah Erce Dutkan
"""
Stiefel-manifold helpers: tangent-space projection and QR retraction.

The basis W lives on the Stiefel manifold {W : W^T W = I}. Riemannian
variants project each Euclidean gradient onto the tangent space at W before
stepping, and every variant maps the updated matrix back onto the manifold
with a thin QR retraction.
"""

import numpy as np


def sym(A: np.ndarray) -> np.ndarray:
    """Symmetric part (A + A^T) / 2 of a square matrix."""
    return 0.5 * (A + A.T)


def tangent_projection(G: np.ndarray, W: np.ndarray) -> np.ndarray:
    """
    Project a Euclidean gradient onto the tangent space at W.

        P_W(G) = G - W sym(W^T G)

    Args:
        G: Euclidean gradient, shape (M, d).
        W: Point on the manifold, shape (M, d).

    Returns:
        Tangent vector of shape (M, d).
    """
    return G - W @ sym(W.T @ G)


def retract(W: np.ndarray) -> np.ndarray:
    """
    Map a matrix back onto the Stiefel manifold via thin QR.

    The signs are fixed so that R has a non-negative diagonal; this keeps the
    retraction continuous, so a small increment yields a basis close to the
    previous one. Zero pivots from a rank-deficient input keep sign +1, and
    Householder QR still returns orthonormal columns for them.

    Args:
        W: Matrix of shape (M, d), M >= d.

    Returns:
        Matrix with orthonormal columns, shape (M, d).
    """
    Q, R = np.linalg.qr(W)
    signs = np.sign(np.diag(R))
    signs[signs == 0] = 1
    return Q * signs


def orthonormality_error(W: np.ndarray) -> float:
    """Frobenius norm of W^T W - I."""
    d = W.shape[1]
    return float(np.linalg.norm(W.T @ W - np.eye(d), "fro"))
